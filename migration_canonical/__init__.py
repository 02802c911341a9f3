"""
Token Migration Canonical Module

This module provides the canonical implementations of every rule that the
off-chain pipeline shares with the on-chain MerkleDistributor and the claim UI.

CRITICAL: ALL components MUST import from this module. Do NOT implement separate
versions of address normalization, leaf hashing or proof verification.

Module Structure:
    constants.py   - Program/mint ids, RPC defaults, leaf ABI types, event types
    addresses.py   - normalize_evm_address (EIP-55), is_solana_address
    merkle.py      - hash_leaf, hash_pair, build_tree, get_proof, verify_proof, verify_claim

Usage:
    # In token_migration/tasks/merkle_build.py:
    from migration_canonical.merkle import hash_leaf, build_tree, get_proof

    # In token_migration/cli.py (verify command):
    from migration_canonical.merkle import verify_claim
"""

__version__ = "1.0.0"

from migration_canonical.constants import (
    TOKEN_PROGRAM_ID,
    UOS_TOKEN_MINT,
    UOS_TOKEN_DECIMALS,
    LEAF_ABI_TYPES,
)

__all__ = [
    "__version__",
    "TOKEN_PROGRAM_ID",
    "UOS_TOKEN_MINT",
    "UOS_TOKEN_DECIMALS",
    "LEAF_ABI_TYPES",
]
