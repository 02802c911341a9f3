"""
Token Migration Canonical Constants

This module is the SINGLE SOURCE OF TRUTH for the constants shared by the
snapshot, allocation, Merkle and publishing stages.

ALL components MUST import from this module. Do NOT redefine these values elsewhere.

Integration Note: The leaf encoding constants below are a contract with the
MerkleDistributor deployed on the destination chain. Changing them changes
every leaf and the root, and the deployed contract will reject every claim.
"""

# =============================================================================
# SOURCE CHAIN (SOLANA)
# =============================================================================

# SPL Token program that owns the snapshotted token accounts
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"

# UOS mint on Solana mainnet (the token being migrated)
UOS_TOKEN_MINT = "79HZeHkX9A5WfBg72ankd1ppTXGepoSGpmkxW63wsrHY"

# UOS has 9 decimals; reported for wallets that hold no token account
UOS_TOKEN_DECIMALS = 9

# Solana public keys are 32 bytes, base58 encoded
SOLANA_PUBKEY_LENGTH = 32

# Public RPC endpoints, in preference order (a private endpoint is prepended by config)
DEFAULT_RPC_ENDPOINTS = (
    "https://rpc.ankr.com/solana",
    "https://api.mainnet-beta.solana.com",
    "https://solana-api.projectserum.com",
)


# =============================================================================
# DESTINATION CHAIN (EVM) LEAF ENCODING
# =============================================================================

# leaf = keccak256(abi.encodePacked(address account, uint256 amount))
LEAF_ABI_TYPES = ("address", "uint256")

# Keccak-256 digest length in bytes
KECCAK_HASH_LENGTH = 32

# Largest amount representable by a uint256 leaf field
UINT256_MAX = 2 ** 256 - 1


# =============================================================================
# RUN EVENT TYPES
# =============================================================================

EVENT_TYPE_SNAPSHOT_COMPLETED = "SNAPSHOT_COMPLETED"
EVENT_TYPE_ALLOCATION_COMPUTED = "ALLOCATION_COMPUTED"
EVENT_TYPE_MERKLE_ROOT_BUILT = "MERKLE_ROOT_BUILT"
EVENT_TYPE_DISTRIBUTION_PUBLISHED = "DISTRIBUTION_PUBLISHED"
