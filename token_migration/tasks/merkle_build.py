"""
Merkle Builder Task
===================

Commits the claim map to a Merkle root and derives one proof per claim.

Leaves are sorted ascending by hash before the tree is built, so the root
and every proof depend only on the set of (address, amount) pairs, never
on the order the claim map was produced in.

Every proof is folded back to the root before a distribution is returned.
A distribution that fails that check is a bug and is never written out.

Author: Token Migration Team
"""

import json
import logging
from pathlib import Path
from typing import Dict

from migration_canonical.addresses import normalize_evm_address
from migration_canonical.merkle import (
    build_tree,
    get_proof,
    get_root,
    hash_leaf,
    to_hex,
    verify_claim,
)
from token_migration.errors import DataIntegrityError, InvariantViolation
from token_migration.models.distribution import ClaimProof, MerkleDistribution

logger = logging.getLogger(__name__)


def build_distribution(claims: Dict[str, int]) -> MerkleDistribution:
    """
    Build the Merkle distribution for a claim map.

    Args:
        claims: Destination address -> claim amount in base units

    Returns:
        MerkleDistribution with a verified proof for every address

    Raises:
        DataIntegrityError: If claims is empty, or has a zero amount, a bad
                            address, or two keys that checksum to one address
        InvariantViolation: If any proof does not fold back to the root
    """
    if not claims:
        raise DataIntegrityError("Cannot build a Merkle tree from an empty claim map")

    leaves = {}
    for account, amount in claims.items():
        try:
            address = normalize_evm_address(account)
        except ValueError as e:
            raise DataIntegrityError(f"Bad claim address: {e}") from e
        if amount <= 0:
            raise DataIntegrityError(f"Claim for {address} must be positive, got {amount}")
        if address in leaves:
            raise DataIntegrityError(f"Duplicate claim address: {address}")

        try:
            leaves[address] = (hash_leaf(address, amount), amount)
        except ValueError as e:
            raise DataIntegrityError(f"Unencodable claim for {address}: {e}") from e

    ordered = sorted(leaves.items(), key=lambda item: item[1][0])
    levels = build_tree([leaf for _, (leaf, _) in ordered])
    root = to_hex(get_root(levels))

    proofs = {
        address: ClaimProof(
            claim_amount=amount,
            proof=[to_hex(node) for node in get_proof(levels, index)],
        )
        for index, (address, (_, amount)) in enumerate(ordered)
    }

    distribution = MerkleDistribution(root=root, proofs=proofs)
    verify_distribution(distribution)

    logger.info(f"Built Merkle tree: {len(proofs)} leaves, depth {len(levels) - 1}, root {root}")
    return distribution


def verify_distribution(distribution: MerkleDistribution) -> None:
    """
    Re-derive every leaf and check its proof against the root.

    Raises:
        InvariantViolation: On the first proof that does not verify
    """
    if not distribution.proofs:
        raise InvariantViolation("Distribution has no proofs")

    for address, claim in distribution.proofs.items():
        try:
            valid = verify_claim(address, claim.claim_amount, claim.proof, distribution.root)
        except ValueError as e:
            raise InvariantViolation(f"Malformed proof for {address}: {e}") from e
        if not valid:
            raise InvariantViolation(f"Proof for {address} does not reproduce root {distribution.root}")


# ============================================================
# File artifacts
# ============================================================

def write_claims_file(claims: Dict[str, str], path: str) -> None:
    """Write the addresses.json claim map ({address: "<amount>"})."""
    Path(path).write_text(json.dumps(claims, indent=2), encoding="utf-8")


def load_claims_file(path: str) -> Dict[str, int]:
    """
    Read an addresses.json claim map.

    Amounts may be decimal strings or JSON integers; floats are rejected.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise DataIntegrityError(f"{path} must contain a JSON object of address -> amount")

    claims = {}
    for address, amount in data.items():
        if isinstance(amount, bool) or not isinstance(amount, (str, int)):
            raise DataIntegrityError(f"Claim for {address} must be an integer string, got {amount!r}")
        try:
            claims[address] = int(amount)
        except ValueError as e:
            raise DataIntegrityError(f"Claim for {address} is not an integer: {amount!r}") from e
    return claims


def write_distribution_file(distribution: MerkleDistribution, path: str) -> None:
    """Write the merkleTree.json artifact."""
    Path(path).write_text(json.dumps(distribution.to_json_dict(), indent=2), encoding="utf-8")


def load_distribution_file(path: str) -> MerkleDistribution:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    try:
        return MerkleDistribution.from_json_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise DataIntegrityError(f"{path} is not a valid Merkle distribution: {e}") from e
