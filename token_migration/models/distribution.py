"""
Distribution Models
===================

Models for the allocation policy, the claim map and the Merkle distribution
artifact.
"""

from decimal import Decimal
from fractions import Fraction
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class AllocationPolicy(BaseModel):
    """
    Distribution policy for the allocator.

    proportional: pool_total (destination base units) is split by share of
    the total source balance; the sum of claims equals pool_total exactly.

    fixed_ratio: each claim is floor(balance * ratio); no pool conservation.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    mode: Literal["proportional", "fixed_ratio"] = "proportional"
    pool_total: Optional[int] = None
    ratio: Optional[Fraction] = None
    min_claim: int = 1
    precision: Optional[int] = None  # None = exact floor, else fixed-point share scale
    token_decimals: int = 18
    token_symbol: str = "TOKEN"


class AllocationSummary(BaseModel):
    """Statistics printed for operator verification"""

    recipients: int
    total: int
    minimum: int
    maximum: int
    average: Decimal
    adjustment: int = 0
    adjusted_account: Optional[str] = None


class AllocationResult(BaseModel):
    """Claim amount per checksummed destination address"""

    claims: Dict[str, int]
    summary: AllocationSummary

    def to_json_dict(self) -> Dict[str, str]:
        """Amounts as decimal strings (addresses.json shape)."""
        return {address: str(amount) for address, amount in sorted(self.claims.items())}


class ClaimProof(BaseModel):
    """Everything a claimant needs besides their address"""

    claim_amount: int = Field(..., ge=0)
    proof: List[str] = Field(default_factory=list, description="0x-prefixed sibling hashes")


class MerkleDistribution(BaseModel):
    """Merkle root plus one proof per destination address"""

    root: str = Field(..., description="0x-prefixed Keccak-256 root")
    proofs: Dict[str, ClaimProof]

    @property
    def token_total(self) -> int:
        return sum(claim.claim_amount for claim in self.proofs.values())

    def to_json_dict(self) -> Dict[str, Any]:
        """
        Serialize to the merkleTree.json shape consumed by the deploy step
        and the claim UI. Amounts are decimal strings so no consumer ever
        parses them into a lossy numeric type.
        """
        return {
            "root": self.root,
            "proofs": {
                address: {"balance": str(claim.claim_amount), "proof": list(claim.proof)}
                for address, claim in sorted(self.proofs.items())
            },
        }

    @classmethod
    def from_json_dict(cls, data: Dict[str, Any]) -> "MerkleDistribution":
        return cls(
            root=data["root"],
            proofs={
                address: ClaimProof(claim_amount=int(entry["balance"]), proof=entry["proof"])
                for address, entry in data["proofs"].items()
            },
        )
