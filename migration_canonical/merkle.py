"""
Canonical Merkle Tree for Claim Distribution

This module provides the canonical leaf encoding, tree construction, proof
generation and proof verification used by the builder, the publisher and the
claim verifier.

CRITICAL: The rules below must match the MerkleDistributor contract bit for
bit. Any deviation produces a root the contract accepts but proofs it rejects.

Merkle Tree Rules:
- Leaves are keccak256(abi.encodePacked(address account, uint256 amount))
  with the account in its EIP-55 checksummed form
- Internal nodes are keccak256(min(a, b) || max(a, b)) (sorted pairs), so a
  proof step needs no left/right flag
- If a level has an odd number of nodes, the last one is carried up
  unchanged (never duplicated)
- Proofs are the ordered sibling hashes from leaf to root; a carried node
  contributes no sibling at that level
"""

from typing import List, Sequence

from eth_abi.packed import encode_packed
from eth_utils import keccak

from migration_canonical.addresses import normalize_evm_address
from migration_canonical.constants import KECCAK_HASH_LENGTH, LEAF_ABI_TYPES, UINT256_MAX


def to_hex(value: bytes) -> str:
    """Encode a hash as a 0x-prefixed lowercase hex string."""
    return "0x" + value.hex()


def from_hex(value: str) -> bytes:
    """Decode a 0x-prefixed (or bare) hex hash, checking its length."""
    raw = value[2:] if value.startswith(("0x", "0X")) else value
    decoded = bytes.fromhex(raw)
    if len(decoded) != KECCAK_HASH_LENGTH:
        raise ValueError(f"Expected a {KECCAK_HASH_LENGTH}-byte hash, got {len(decoded)} bytes")
    return decoded


def hash_leaf(account: str, amount: int) -> bytes:
    """
    Compute the leaf for one (account, claim amount) pair.

    Equivalent to Solidity's keccak256(abi.encodePacked(account, amount))
    and to ethers' solidityPackedKeccak256(["address", "uint256"], ...).

    Args:
        account: Destination EVM address (any case; normalized to checksum)
        amount: Claim amount in destination base units

    Returns:
        32-byte Keccak-256 digest

    Raises:
        ValueError: If the address is invalid or amount is outside uint256
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"Claim amount must be an integer, got {type(amount).__name__}")
    if amount < 0 or amount > UINT256_MAX:
        raise ValueError(f"Claim amount {amount} does not fit in uint256")

    packed = encode_packed(list(LEAF_ABI_TYPES), [normalize_evm_address(account), amount])
    return keccak(packed)


def hash_pair(a: bytes, b: bytes) -> bytes:
    """Hash two sibling nodes in sorted order (commutative pairing)."""
    if a <= b:
        return keccak(a + b)
    return keccak(b + a)


def build_tree(leaves: Sequence[bytes]) -> List[List[bytes]]:
    """
    Build the tree bottom-up and return every level.

    Args:
        leaves: Leaf hashes in tree order

    Returns:
        List of levels: [0] = leaves, [-1] = [root]

    Raises:
        ValueError: If leaves is empty (an empty tree has no root)
    """
    if not leaves:
        raise ValueError("Cannot build a Merkle tree without leaves")

    levels = [list(leaves)]
    current_level = levels[0]

    while len(current_level) > 1:
        next_level = []

        for i in range(0, len(current_level), 2):
            if i + 1 < len(current_level):
                next_level.append(hash_pair(current_level[i], current_level[i + 1]))
            else:
                # Odd node out: carry it up unpaired
                next_level.append(current_level[i])

        levels.append(next_level)
        current_level = next_level

    return levels


def get_root(levels: List[List[bytes]]) -> bytes:
    """Return the root from levels produced by build_tree()."""
    return levels[-1][0]


def get_proof(levels: List[List[bytes]], leaf_index: int) -> List[bytes]:
    """
    Collect the sibling hashes for the leaf at leaf_index.

    Raises:
        IndexError: If leaf_index is out of range
    """
    if leaf_index < 0 or leaf_index >= len(levels[0]):
        raise IndexError(f"Leaf index {leaf_index} out of range (0-{len(levels[0]) - 1})")

    proof = []
    index = leaf_index

    for level in levels[:-1]:
        sibling = index ^ 1
        if sibling < len(level):
            proof.append(level[sibling])
        index //= 2

    return proof


def process_proof(leaf: bytes, proof: Sequence[bytes]) -> bytes:
    """Fold a leaf through its proof path, returning the recomputed root."""
    computed = leaf
    for sibling in proof:
        computed = hash_pair(computed, sibling)
    return computed


def verify_proof(leaf: bytes, proof: Sequence[bytes], root: bytes) -> bool:
    """True if folding leaf through proof yields exactly root."""
    return process_proof(leaf, proof) == root


def verify_claim(account: str, amount: int, proof_hex: Sequence[str], root_hex: str) -> bool:
    """
    Verify a published claim the way the distributor contract does.

    Args:
        account: Destination EVM address
        amount: Claim amount in base units
        proof_hex: Proof path as 0x-prefixed hex strings
        root_hex: Published root as 0x-prefixed hex string
    """
    leaf = hash_leaf(account, amount)
    proof = [from_hex(node) for node in proof_hex]
    return verify_proof(leaf, proof, from_hex(root_hex))
