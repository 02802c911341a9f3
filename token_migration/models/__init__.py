"""
Pipeline Models
===============

Pydantic models for the records passed between stages.
"""

from token_migration.models.snapshot import (
    RegisteredUser,
    TokenBalance,
    AccountBalance,
    SnapshotResult,
)
from token_migration.models.distribution import (
    AllocationPolicy,
    AllocationSummary,
    AllocationResult,
    ClaimProof,
    MerkleDistribution,
)

__all__ = [
    "RegisteredUser",
    "TokenBalance",
    "AccountBalance",
    "SnapshotResult",
    "AllocationPolicy",
    "AllocationSummary",
    "AllocationResult",
    "ClaimProof",
    "MerkleDistribution",
]
