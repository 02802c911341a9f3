"""
Balance Snapshot Task
=====================

Records the exact source-chain token balance of every registered wallet.

Wallets are processed in fixed-size batches of concurrent lookups with a
pause between batches, keeping the run under public RPC rate limits.

A wallet whose balance cannot be fetched from any endpoint (or whose write
to the store fails) is reported in SnapshotResult.failed and left untouched
in the store. The run never aborts for one wallet; the operator re-runs the
snapshot for just the stragglers (see write_failed_accounts / --only-file).

Author: Token Migration Team
"""

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import List, Optional, Set, Tuple

import aiohttp

from token_migration import config
from token_migration.db.store import MigrationStore
from token_migration.errors import OracleError, StoreError
from token_migration.models.snapshot import AccountBalance, RegisteredUser, SnapshotResult
from token_migration.utils.executor import run_blocking
from token_migration.utils.solana_rpc import SolanaBalanceOracle, open_session

logger = logging.getLogger(__name__)


async def _process_user(
    user: RegisteredUser,
    store: MigrationStore,
    oracle: SolanaBalanceOracle,
    session: aiohttp.ClientSession,
) -> Optional[AccountBalance]:
    """Look up and record one wallet. Returns None on failure."""
    try:
        balance, endpoint = await oracle.get_balance(session, user.solana_address)
    except OracleError as e:
        logger.error(f"Failed to get balance for {user.solana_address} from all endpoints: {e}")
        return None

    try:
        await run_blocking(store.record_balance, user.solana_address, balance)
    except StoreError as e:
        logger.error(f"Failed to update balance for {user.solana_address}: {e}")
        return None

    logger.debug(f"{user.solana_address}: {balance.amount} (via {endpoint})")
    return AccountBalance(
        solana_address=user.solana_address,
        evm_address=user.evm_address,
        balance=balance,
    )


async def process_user_batch(
    batch: List[RegisteredUser],
    store: MigrationStore,
    oracle: SolanaBalanceOracle,
    session: aiohttp.ClientSession,
) -> Tuple[List[AccountBalance], List[RegisteredUser]]:
    """
    Process one batch of wallets concurrently.

    Returns:
        (successful, failed)
    """
    outcomes = await asyncio.gather(
        *[_process_user(user, store, oracle, session) for user in batch]
    )

    successful = [outcome for outcome in outcomes if outcome is not None]
    failed = [user for user, outcome in zip(batch, outcomes) if outcome is None]
    return successful, failed


async def take_snapshot(
    store: MigrationStore,
    oracle: SolanaBalanceOracle,
    batch_size: int = None,
    batch_delay: float = None,
    only: Optional[Set[str]] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> SnapshotResult:
    """
    Snapshot every registered wallet's balance into the store.

    Process:
    1. Load registered wallet pairs (optionally only the given Solana addresses)
    2. For each batch: look up balances concurrently, upsert each success
    3. Wait batch_delay seconds before the next batch
    4. Report successes, failures and balance statistics

    Args:
        store: Durable store (source of wallets, sink of balances)
        oracle: Balance oracle with endpoint fallback
        batch_size: Concurrent lookups per batch (default: SNAPSHOT_BATCH_SIZE)
        batch_delay: Seconds between batches (default: SNAPSHOT_BATCH_DELAY_SECONDS)
        only: Restrict the run to these Solana addresses (straggler re-run)
        session: HTTP session to reuse (one is opened and closed otherwise)

    Returns:
        SnapshotResult with successful and failed wallets
    """
    batch_size = batch_size or config.SNAPSHOT_BATCH_SIZE
    batch_delay = config.SNAPSHOT_BATCH_DELAY_SECONDS if batch_delay is None else batch_delay
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    print("📸 Starting balance snapshot...")
    start_time = time.monotonic()

    users = await run_blocking(store.fetch_registered_users, only)
    if not users:
        print("⚠️  No registered users found")
        return SnapshotResult()

    print(f"   Found {len(users)} registered users")

    successful: List[AccountBalance] = []
    failed: List[RegisteredUser] = []
    total_batches = (len(users) + batch_size - 1) // batch_size

    own_session = session is None
    if own_session:
        session = open_session()

    try:
        for batch_number, start in enumerate(range(0, len(users), batch_size), start=1):
            batch = users[start:start + batch_size]
            print(f"\n   Processing batch {batch_number}/{total_batches}")

            batch_successful, batch_failed = await process_user_batch(batch, store, oracle, session)
            successful.extend(batch_successful)
            failed.extend(batch_failed)

            if batch_number < total_batches and batch_delay > 0:
                print(f"   Waiting {batch_delay:g} seconds before processing next batch...")
                await asyncio.sleep(batch_delay)
    finally:
        if own_session:
            await session.close()

    result = SnapshotResult(
        successful=successful,
        failed=failed,
        duration_seconds=time.monotonic() - start_time,
    )
    print_snapshot_summary(result)
    return result


def print_snapshot_summary(result: SnapshotResult):
    """Print the end-of-run report (durations, failures, balance statistics)."""
    print("\n=== Snapshot Complete ===")
    print(f"Duration: {result.duration_seconds:.2f} seconds")
    print(f"Successfully processed: {len(result.successful)} addresses")
    print(f"Failed to process: {len(result.failed)} addresses")

    if result.failed:
        print("\nFailed addresses:")
        for user in result.failed:
            print(f"- {user.solana_address}")

    stats = result.balance_statistics()
    if stats:
        print("\nBalance Statistics (in token units):")
        print(f"Total: {stats['total']}")
        print(f"Average: {stats['average']:.9f}")
        print(f"Max: {stats['max']}")
        print(f"Min: {stats['min']}")


def write_failed_accounts(result: SnapshotResult, path: str) -> int:
    """Save failed wallets as a JSON list of Solana addresses for a re-run."""
    addresses = [user.solana_address for user in result.failed]
    Path(path).write_text(json.dumps(addresses, indent=2), encoding="utf-8")
    return len(addresses)


def read_account_list(path: str) -> Set[str]:
    """Read a JSON list of Solana addresses written by write_failed_accounts()."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
        raise ValueError(f"{path} must contain a JSON list of addresses")
    return set(data)
