"""
Publisher Task
==============

Makes the root and the per-address proofs available to the deploy step
and the claim lookup.

Order of writes:
1. Re-verify every proof (nothing unverified leaves the process)
2. merkleTree.json artifact
3. Proof rows, upserted by address (re-publishing never duplicates)
4. Stale rows from an earlier distribution are pruned
5. The root record, last, so a reader never sees a root whose proofs
   are not all in place

Between steps 3 and 5 the stored root is still the previous one while the
proof rows already belong to the new tree (and pruned addresses are gone).
Claim lookups during that window can return a proof that does not verify
against the stored root. Publish while claims are paused, or before the
new root is registered on-chain.

Author: Token Migration Team
"""

import logging
from typing import Any, Dict, Optional

from token_migration import config
from token_migration.db.store import MigrationStore
from token_migration.models.distribution import MerkleDistribution
from token_migration.tasks.merkle_build import verify_distribution, write_distribution_file
from token_migration.utils.executor import run_blocking

logger = logging.getLogger(__name__)


def build_proof_rows(distribution: MerkleDistribution):
    """One merkle table row per address, amount as a decimal string."""
    return [
        {
            "address": address,
            "balance": str(claim.claim_amount),
            "proof": list(claim.proof),
        }
        for address, claim in sorted(distribution.proofs.items())
    ]


async def publish_distribution(
    distribution: MerkleDistribution,
    store: Optional[MigrationStore] = None,
    output_file: Optional[str] = None,
    campaign: str = None,
    prune: bool = True,
    batch_size: int = None,
) -> Dict[str, Any]:
    """
    Publish a Merkle distribution to a file and/or the store.

    Args:
        distribution: Verified output of build_distribution()
        store: Durable store (None = file only)
        output_file: JSON artifact path (None = no file)
        campaign: Root record key (default: CAMPAIGN_ID)
        prune: Delete proof rows for addresses not in this distribution
        batch_size: Rows per upsert request (default: PUBLISH_BATCH_SIZE)

    Returns:
        Summary dict (root, recipients, token_total, rows_written, rows_pruned)

    Raises:
        InvariantViolation: If any proof fails re-verification
        StoreError: If a store write fails
    """
    campaign = campaign or config.CAMPAIGN_ID
    batch_size = batch_size or config.PUBLISH_BATCH_SIZE

    verify_distribution(distribution)

    summary = {
        "campaign": campaign,
        "root": distribution.root,
        "recipients": len(distribution.proofs),
        "token_total": str(distribution.token_total),
        "rows_written": 0,
        "rows_pruned": 0,
        "output_file": output_file,
    }

    if output_file:
        write_distribution_file(distribution, output_file)
        print(f"✅ Merkle tree written to {output_file}")

    if store is None:
        return summary

    rows = build_proof_rows(distribution)
    print(f"📤 Publishing {len(rows)} proofs...")
    summary["rows_written"] = await run_blocking(store.upsert_proofs, rows, batch_size)

    if prune:
        published = await run_blocking(store.fetch_published_addresses)
        stale = sorted(published - set(distribution.proofs))
        if stale:
            logger.info(f"Pruning {len(stale)} proofs from a previous distribution")
            summary["rows_pruned"] = await run_blocking(store.delete_proofs, stale, batch_size)

    await run_blocking(
        store.save_root, campaign, distribution.root, len(distribution.proofs), distribution.token_total
    )

    print(f"✅ Published root {distribution.root} for campaign '{campaign}'")
    print(f"   Rows written: {summary['rows_written']}, pruned: {summary['rows_pruned']}")
    return summary
