"""
Snapshot Models
===============

Balances are exact integers in the token's smallest unit. Decimal values
exist only for operator-facing statistics.
"""

from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class RegisteredUser(BaseModel):
    """A wallet pair registered for migration"""

    solana_address: str = Field(..., description="Source wallet (base58)")
    evm_address: str = Field(..., description="Destination wallet (0x hex)")


class TokenBalance(BaseModel):
    """Exact on-chain token quantity at snapshot time"""

    amount: int = Field(..., ge=0, description="Raw amount in base units")
    decimals: int = Field(..., ge=0)

    @property
    def ui_amount(self) -> Decimal:
        return Decimal(self.amount).scaleb(-self.decimals)


class AccountBalance(BaseModel):
    """A registered wallet pair with its recorded balance"""

    solana_address: str
    evm_address: str
    balance: TokenBalance


class SnapshotResult(BaseModel):
    """
    Outcome of one snapshot run.

    Failed wallets are reported, never stored, so an operator can re-run the
    snapshot for just those wallets.
    """

    successful: List[AccountBalance] = []
    failed: List[RegisteredUser] = []
    duration_seconds: float = 0.0

    def balance_statistics(self) -> Optional[Dict[str, Decimal]]:
        """Total/average/max/min of successful balances in token units."""
        if not self.successful:
            return None

        amounts = [entry.balance.ui_amount for entry in self.successful]
        total = sum(amounts, Decimal(0))
        return {
            "total": total,
            "average": total / len(amounts),
            "max": max(amounts),
            "min": min(amounts),
        }
