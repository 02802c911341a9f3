"""
Solana Balance Oracle
=====================

Looks up a wallet's SPL token balance over JSON-RPC, treating every RPC
endpoint as unreliable and interchangeable.

Fallback policy:
- Endpoints are tried in a fixed preference order (private endpoint first)
- Transport errors, timeouts, non-2xx answers, rate limits and JSON-RPC
  errors all fall through to the next endpoint
- Only when every endpoint fails does the lookup fail

A wallet without a token account for the mint holds zero tokens. That is a
successful lookup, not an error.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import aiohttp
from pydantic import ValidationError

from token_migration import config
from token_migration.errors import OracleError, OracleRateLimited
from token_migration.models.snapshot import TokenBalance

logger = logging.getLogger(__name__)

# JSON-RPC error codes some providers use for "slow down"
RATE_LIMIT_RPC_CODES = {429, -32429, -32005}


def open_session() -> aiohttp.ClientSession:
    """One HTTP session per snapshot run, shared by every lookup."""
    return aiohttp.ClientSession(headers={"Content-Type": "application/json"})


class SolanaBalanceOracle:
    """
    Token balance lookups for a single SPL mint.

    Args:
        endpoints: RPC URLs in preference order
        mint: SPL mint address whose balance is looked up
        timeout: Hard per-request timeout in seconds
        default_decimals: Decimals reported when the wallet has no token account
    """

    def __init__(
        self,
        endpoints: Sequence[str] = None,
        mint: str = None,
        timeout: float = None,
        default_decimals: int = None,
    ):
        self.endpoints = list(endpoints if endpoints is not None else config.RPC_ENDPOINTS)
        self.mint = mint or config.SOURCE_TOKEN_MINT
        self.timeout = timeout if timeout is not None else config.RPC_TIMEOUT_SECONDS
        self.default_decimals = (
            default_decimals if default_decimals is not None else config.SOURCE_TOKEN_DECIMALS
        )
        self._request_id = 0

        if not self.endpoints:
            raise ValueError("SolanaBalanceOracle needs at least one RPC endpoint")

    async def _rpc_call(
        self,
        session: aiohttp.ClientSession,
        endpoint: str,
        method: str,
        params: List[Any],
    ) -> Any:
        """POST one JSON-RPC request and return its result field."""
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}

        try:
            async with session.post(
                endpoint,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status == 429:
                    raise OracleRateLimited("HTTP 429 rate limited", endpoint)
                if response.status < 200 or response.status >= 300:
                    raise OracleError(f"HTTP {response.status}", endpoint)
                body = await response.json(content_type=None)
        except asyncio.TimeoutError:
            raise OracleError(f"timed out after {self.timeout}s", endpoint)
        except aiohttp.ClientError as e:
            raise OracleError(f"transport error: {e}", endpoint)
        except ValueError as e:
            raise OracleError(f"invalid JSON response: {e}", endpoint)

        if not isinstance(body, dict):
            raise OracleError("malformed JSON-RPC response", endpoint)

        error = body.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message") if isinstance(error, dict) else str(error)
            if code in RATE_LIMIT_RPC_CODES:
                raise OracleRateLimited(f"RPC rate limited ({code}): {message}", endpoint)
            raise OracleError(f"RPC error ({code}): {message}", endpoint)

        return body.get("result")

    def _parse_balance(self, result: Optional[Dict[str, Any]], endpoint: str) -> TokenBalance:
        try:
            accounts = result["value"]
        except (TypeError, KeyError):
            raise OracleError("response has no 'value' field", endpoint)

        if not accounts:
            return TokenBalance(amount=0, decimals=self.default_decimals)

        amount = 0
        decimals = None
        try:
            for account in accounts:
                info = account["account"]["data"]["parsed"]["info"]
                if info.get("mint") != self.mint:
                    continue
                token_amount = info["tokenAmount"]
                # "amount" is the exact base-unit string; never use uiAmount (a float)
                account_amount = int(token_amount["amount"])
                if account_amount < 0:
                    raise ValueError(f"negative token amount {account_amount}")
                amount += account_amount
                decimals = int(token_amount["decimals"])

            if decimals is None:
                return TokenBalance(amount=0, decimals=self.default_decimals)
            return TokenBalance(amount=amount, decimals=decimals)
        except (AttributeError, TypeError, KeyError, ValueError, ValidationError) as e:
            raise OracleError(f"unparseable token account: {e}", endpoint)

    async def fetch_balance(
        self,
        session: aiohttp.ClientSession,
        endpoint: str,
        owner: str,
    ) -> TokenBalance:
        """Balance of owner for the configured mint, from one endpoint."""
        result = await self._rpc_call(
            session,
            endpoint,
            "getTokenAccountsByOwner",
            [owner, {"mint": self.mint}, {"encoding": "jsonParsed"}],
        )
        return self._parse_balance(result, endpoint)

    async def get_balance(
        self,
        session: aiohttp.ClientSession,
        owner: str,
    ) -> Tuple[TokenBalance, str]:
        """
        Balance of owner, falling back across endpoints.

        Returns:
            (balance, endpoint that answered)

        Raises:
            OracleError: If every endpoint failed; the message lists each failure
        """
        failures = []

        for endpoint in self.endpoints:
            try:
                balance = await self.fetch_balance(session, endpoint, owner)
                return balance, endpoint
            except OracleError as e:
                logger.warning(f"Failed to get balance from {endpoint} for {owner}: {e}")
                failures.append(f"{endpoint}: {e}")

        raise OracleError(
            f"All {len(self.endpoints)} endpoints failed for {owner} ({'; '.join(failures)})"
        )
