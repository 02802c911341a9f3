"""
Migration Pipeline
==================

Runs the four stages in their fixed order, each consuming the previous
stage's durable output:

    Snapshot -> Allocation -> Merkle Build -> Publish

Each stage wrapper logs one run event to migration_events when it
completes. A stage that raises aborts the run; nothing downstream of it
executes, so a partial or unverified root is never published.

Author: Token Migration Team
"""

import logging
from typing import Any, Dict, Optional, Set

from pydantic import BaseModel

from migration_canonical.constants import (
    EVENT_TYPE_ALLOCATION_COMPUTED,
    EVENT_TYPE_DISTRIBUTION_PUBLISHED,
    EVENT_TYPE_MERKLE_ROOT_BUILT,
    EVENT_TYPE_SNAPSHOT_COMPLETED,
)
from token_migration.db.store import MigrationStore
from token_migration.errors import DataIntegrityError
from token_migration.models.distribution import (
    AllocationPolicy,
    AllocationResult,
    AllocationSummary,
    MerkleDistribution,
)
from token_migration.models.snapshot import SnapshotResult
from token_migration.tasks.allocation import calculate_claim_amounts, print_allocation_summary
from token_migration.tasks.merkle_build import build_distribution
from token_migration.tasks.publish import publish_distribution
from token_migration.tasks.snapshot import take_snapshot
from token_migration.utils.executor import run_blocking
from token_migration.utils.logger import log_run_event
from token_migration.utils.solana_rpc import SolanaBalanceOracle

logger = logging.getLogger(__name__)


class PipelineReport(BaseModel):
    """What one full pipeline run produced"""

    snapshot_successful: Optional[int] = None
    snapshot_failed: Optional[int] = None
    allocation: Optional[AllocationSummary] = None
    root: Optional[str] = None
    published: Optional[Dict[str, Any]] = None


async def run_snapshot_stage(
    store: MigrationStore,
    oracle: SolanaBalanceOracle,
    only: Optional[Set[str]] = None,
    batch_size: int = None,
    batch_delay: float = None,
) -> SnapshotResult:
    result = await take_snapshot(store, oracle, batch_size=batch_size, batch_delay=batch_delay, only=only)

    await log_run_event(store, EVENT_TYPE_SNAPSHOT_COMPLETED, {
        "successful": len(result.successful),
        "failed": [user.solana_address for user in result.failed],
        "duration_seconds": round(result.duration_seconds, 3),
        "total_raw_balance": str(sum(entry.balance.amount for entry in result.successful)),
    })
    return result


async def run_allocation_stage(store: MigrationStore, policy: AllocationPolicy) -> AllocationResult:
    """Load every recorded balance from the store and allocate claims."""
    print("🧮 Calculating claim amounts...")
    balances = await run_blocking(store.fetch_balances)
    print(f"   Found {len(balances)} users with balances")

    result = calculate_claim_amounts(balances, policy)
    print_allocation_summary(result, policy)

    summary = result.summary
    await log_run_event(store, EVENT_TYPE_ALLOCATION_COMPUTED, {
        "mode": policy.mode,
        "pool_total": str(policy.pool_total) if policy.pool_total is not None else None,
        "ratio": str(policy.ratio) if policy.ratio is not None else None,
        "recipients": summary.recipients,
        "total": str(summary.total),
        "adjustment": str(summary.adjustment),
        "adjusted_account": summary.adjusted_account,
    })
    return result


async def run_build_stage(claims: Dict[str, int], store: Optional[MigrationStore] = None) -> MerkleDistribution:
    print(f"🌳 Building Merkle tree for {len(claims)} claims...")
    distribution = build_distribution(claims)
    print(f"   Merkle Root: {distribution.root}")

    await log_run_event(store, EVENT_TYPE_MERKLE_ROOT_BUILT, {
        "root": distribution.root,
        "recipients": len(distribution.proofs),
        "token_total": str(distribution.token_total),
    })
    return distribution


async def run_publish_stage(
    distribution: MerkleDistribution,
    store: Optional[MigrationStore],
    output_file: Optional[str] = None,
    campaign: str = None,
    prune: bool = True,
) -> Dict[str, Any]:
    summary = await publish_distribution(
        distribution, store=store, output_file=output_file, campaign=campaign, prune=prune
    )
    await log_run_event(store, EVENT_TYPE_DISTRIBUTION_PUBLISHED, summary)
    return summary


async def run_pipeline(
    store: MigrationStore,
    oracle: SolanaBalanceOracle,
    policy: AllocationPolicy,
    output_file: Optional[str] = None,
    campaign: str = None,
    skip_snapshot: bool = False,
    allow_partial: bool = False,
    prune: bool = True,
) -> PipelineReport:
    """
    Run every stage end to end.

    Args:
        store: Durable store
        oracle: Balance oracle (unused when skip_snapshot)
        policy: Distribution policy
        output_file: merkleTree.json path (None = store only)
        campaign: Root record key
        skip_snapshot: Allocate from balances already in the store
        allow_partial: Continue past a snapshot with failed wallets
        prune: Remove proof rows that are not in the new distribution

    Raises:
        DataIntegrityError: If the snapshot had failures and allow_partial is False
    """
    report = PipelineReport()

    if not skip_snapshot:
        snapshot = await run_snapshot_stage(store, oracle)
        report.snapshot_successful = len(snapshot.successful)
        report.snapshot_failed = len(snapshot.failed)

        if snapshot.failed and not allow_partial:
            failed = ", ".join(user.solana_address for user in snapshot.failed)
            raise DataIntegrityError(
                f"Snapshot failed for {len(snapshot.failed)} wallet(s): {failed}. "
                "Re-run the snapshot for these wallets or pass --allow-partial"
            )

    allocation = await run_allocation_stage(store, policy)
    report.allocation = allocation.summary

    distribution = await run_build_stage(allocation.claims, store)
    report.root = distribution.root

    report.published = await run_publish_stage(
        distribution, store, output_file=output_file, campaign=campaign, prune=prune
    )

    logger.info(f"Pipeline complete: root {distribution.root}")
    return report
