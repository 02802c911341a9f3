"""
Migration Store
===============

The only module that knows table and column names.

Tables:
    registered_users  (id, solana_address UNIQUE, evm_address UNIQUE,
                       solana_balance TEXT, solana_decimals INT, snapshot_at)
    merkle            (address TEXT PRIMARY KEY, balance TEXT, proof TEXT[])
    merkle_roots      (campaign TEXT PRIMARY KEY, merkle_root TEXT,
                       recipients INT, token_total TEXT, published_at)
    migration_events  (id, event_type, payload JSONB, payload_hash, build_id, ts)

Amounts are stored as TEXT so no Postgres or JavaScript numeric type can
round a uint256 value.

Concurrency: the pipeline is a single-operator batch tool. There is no
locking here; two concurrent runs of the same stage must be prevented
operationally.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from migration_canonical.addresses import is_solana_address, normalize_evm_address
from token_migration.errors import AlreadyRegisteredError, DataIntegrityError, StoreError
from token_migration.models.snapshot import AccountBalance, RegisteredUser, TokenBalance

logger = logging.getLogger(__name__)

USERS_TABLE = "registered_users"
PROOFS_TABLE = "merkle"
ROOTS_TABLE = "merkle_roots"
EVENTS_TABLE = "migration_events"

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"

# PostgREST caps unpaged selects at 1000 rows
DEFAULT_PAGE_SIZE = 1000


def _chunks(items: List[Any], size: int) -> Iterable[List[Any]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class MigrationStore:
    """Supabase-backed durable store shared by all pipeline stages."""

    def __init__(self, client: Client, page_size: int = DEFAULT_PAGE_SIZE):
        self.client = client
        self.page_size = page_size

    def _execute(self, query, action: str):
        try:
            return query.execute()
        except APIError as e:
            raise StoreError(f"{action} failed: {getattr(e, 'message', None) or e}") from e
        except httpx.HTTPError as e:
            raise StoreError(f"{action} failed: {e}") from e

    def _fetch_all(self, build_query, action: str) -> List[Dict[str, Any]]:
        """Page through a select with .range() until a short page comes back."""
        rows: List[Dict[str, Any]] = []
        start = 0

        while True:
            query = build_query().range(start, start + self.page_size - 1)
            page = self._execute(query, action).data or []
            rows.extend(page)
            if len(page) < self.page_size:
                return rows
            start += self.page_size

    # ------------------------------------------------------------------
    # Registered users / balances
    # ------------------------------------------------------------------

    def fetch_registered_users(self, only: Optional[Set[str]] = None) -> List[RegisteredUser]:
        """
        Load every registered wallet pair.

        Args:
            only: Optional set of Solana addresses to restrict to (straggler re-runs)
        """
        rows = self._fetch_all(
            lambda: self.client.table(USERS_TABLE)
            .select("solana_address, evm_address")
            .order("solana_address"),
            "Fetching registered users",
        )

        users = [RegisteredUser(**row) for row in rows]
        if only is not None:
            users = [user for user in users if user.solana_address in only]
        return users

    def record_balance(self, solana_address: str, balance: TokenBalance) -> None:
        """Overwrite the snapshot balance for one wallet (idempotent)."""
        query = self.client.table(USERS_TABLE) \
            .update({
                "solana_balance": str(balance.amount),
                "solana_decimals": balance.decimals,
                "snapshot_at": datetime.now(timezone.utc).isoformat(),
            }) \
            .eq("solana_address", solana_address)

        self._execute(query, f"Recording balance for {solana_address}")

    def fetch_balances(self) -> List[AccountBalance]:
        """Load every wallet with a recorded (non-null) snapshot balance."""
        rows = self._fetch_all(
            lambda: self.client.table(USERS_TABLE)
            .select("solana_address, evm_address, solana_balance, solana_decimals")
            .filter("solana_balance", "not.is", "null")
            .order("solana_address"),
            "Fetching balances",
        )

        balances = []
        for row in rows:
            try:
                balance = TokenBalance(
                    amount=int(row["solana_balance"]),
                    decimals=row.get("solana_decimals") or 0,
                )
            except ValueError as e:
                raise DataIntegrityError(
                    f"Unusable balance {row['solana_balance']!r} for {row['solana_address']}"
                ) from e

            balances.append(AccountBalance(
                solana_address=row["solana_address"],
                evm_address=row["evm_address"],
                balance=balance,
            ))
        return balances

    def register_user(self, solana_address: str, evm_address: str) -> RegisteredUser:
        """
        Register a wallet pair for migration.

        Each Solana address and each EVM address may be registered once.

        Raises:
            DataIntegrityError: If either address is malformed
            AlreadyRegisteredError: If either address is already registered
        """
        if not is_solana_address(solana_address):
            raise DataIntegrityError(f"Invalid Solana address: {solana_address!r}")
        try:
            evm_address = normalize_evm_address(evm_address)
        except ValueError as e:
            raise DataIntegrityError(str(e)) from e

        user = RegisteredUser(solana_address=solana_address, evm_address=evm_address)

        for field, value in (("solana_address", user.solana_address), ("evm_address", user.evm_address)):
            existing = self._execute(
                self.client.table(USERS_TABLE).select("id").eq(field, value).limit(1),
                "Checking existing registration",
            )
            if existing.data:
                raise AlreadyRegisteredError(field, value)

        try:
            self.client.table(USERS_TABLE).insert(user.model_dump()).execute()
        except APIError as e:
            # Raced with another registration between the check and the insert
            if getattr(e, "code", None) == UNIQUE_VIOLATION:
                message = getattr(e, "message", None) or str(e)
                if "evm_address" in message:
                    raise AlreadyRegisteredError("evm_address", user.evm_address) from e
                raise AlreadyRegisteredError("solana_address", user.solana_address) from e
            raise StoreError(f"Registering {solana_address} failed: {getattr(e, 'message', None) or e}") from e
        except httpx.HTTPError as e:
            raise StoreError(f"Registering {solana_address} failed: {e}") from e

        logger.info(f"Registered {user.solana_address} -> {user.evm_address}")
        return user

    # ------------------------------------------------------------------
    # Published proofs / root
    # ------------------------------------------------------------------

    def upsert_proofs(self, rows: List[Dict[str, Any]], batch_size: int = 500) -> int:
        """Upsert proof rows keyed by address. Returns the number of rows written."""
        written = 0
        for chunk in _chunks(rows, batch_size):
            self._execute(
                self.client.table(PROOFS_TABLE).upsert(chunk, on_conflict="address"),
                "Upserting proofs",
            )
            written += len(chunk)
        return written

    def fetch_published_addresses(self) -> Set[str]:
        rows = self._fetch_all(
            lambda: self.client.table(PROOFS_TABLE).select("address").order("address"),
            "Fetching published addresses",
        )
        return {row["address"] for row in rows}

    def delete_proofs(self, addresses: List[str], batch_size: int = 500) -> int:
        deleted = 0
        for chunk in _chunks(sorted(addresses), batch_size):
            self._execute(
                self.client.table(PROOFS_TABLE).delete().in_("address", chunk),
                "Deleting stale proofs",
            )
            deleted += len(chunk)
        return deleted

    def fetch_proof(self, address: str) -> Optional[Dict[str, Any]]:
        """Claim lookup: the published row for an address, in any letter case."""
        result = self._execute(
            self.client.table(PROOFS_TABLE)
            .select("address, balance, proof")
            .eq("address", normalize_evm_address(address))
            .limit(1),
            "Fetching proof",
        )
        return result.data[0] if result.data else None

    def save_root(self, campaign: str, root: str, recipients: int, token_total: int) -> None:
        self._execute(
            self.client.table(ROOTS_TABLE).upsert({
                "campaign": campaign,
                "merkle_root": root,
                "recipients": recipients,
                "token_total": str(token_total),
                "published_at": datetime.now(timezone.utc).isoformat(),
            }, on_conflict="campaign"),
            "Saving Merkle root",
        )

    def fetch_root(self, campaign: str) -> Optional[Dict[str, Any]]:
        result = self._execute(
            self.client.table(ROOTS_TABLE).select("*").eq("campaign", campaign).limit(1),
            "Fetching Merkle root",
        )
        return result.data[0] if result.data else None

    # ------------------------------------------------------------------
    # Run events
    # ------------------------------------------------------------------

    def insert_event(self, row: Dict[str, Any]) -> None:
        self._execute(self.client.table(EVENTS_TABLE).insert(row), "Logging run event")
