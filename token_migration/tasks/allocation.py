"""
Claim Amount Allocation Task
============================

Turns a completed balance snapshot into an exact claim amount per
destination address.

All arithmetic is on Python integers. Floats never touch a balance or a
claim: a single lost unit would make the published total disagree with
what the distributor contract holds.

Policies:
- proportional (default): claim = floor(balance * pool_total / total_balance).
  The rounding remainder (positive, or negative when minimum-claim floors
  overshoot) is applied to the single largest holder so that the claims sum
  to pool_total exactly.
- fixed_ratio: claim = floor(balance * ratio). No conservation; the total
  follows the input balances.

In both modes a holder with a non-zero balance never gets less than
min_claim, and zero-balance wallets never get a claim at all.

Author: Token Migration Team
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable, Tuple

from migration_canonical.addresses import normalize_evm_address
from token_migration.errors import ConfigurationError, DataIntegrityError, InvariantViolation
from token_migration.models.distribution import AllocationPolicy, AllocationResult, AllocationSummary
from token_migration.models.snapshot import AccountBalance

logger = logging.getLogger(__name__)


def format_token_amount(amount: int, decimals: int) -> str:
    """Render base units as a token quantity (display only)."""
    return f"{Decimal(amount).scaleb(-decimals):f}"


def check_policy(policy: AllocationPolicy) -> None:
    """
    Raises:
        ConfigurationError: If policy parameters are missing or non-positive
    """
    if policy.min_claim < 1:
        raise ConfigurationError(f"Minimum claim must be at least 1 base unit, got {policy.min_claim}")

    if policy.mode == "proportional":
        if policy.pool_total is None or policy.pool_total <= 0:
            raise ConfigurationError("Proportional mode needs a positive pool total (CLAIM_POOL_AMOUNT)")
        if policy.precision is not None and policy.precision < 1:
            raise ConfigurationError(f"Allocation precision must be positive, got {policy.precision}")
    elif policy.mode == "fixed_ratio":
        if policy.ratio is None or policy.ratio <= 0:
            raise ConfigurationError("Fixed-ratio mode needs a positive MIGRATION_RATIO")
    else:
        raise ConfigurationError(f"Unknown allocation mode: {policy.mode!r}")


def _eligible_balances(balances: Iterable[AccountBalance]) -> Dict[str, int]:
    """Checksummed destination address -> raw balance, zero balances dropped."""
    eligible: Dict[str, int] = {}

    for entry in balances:
        raw_amount = entry.balance.amount
        if raw_amount == 0:
            logger.debug(f"Skipping user with zero balance: {entry.evm_address}")
            continue

        try:
            address = normalize_evm_address(entry.evm_address)
        except ValueError as e:
            raise DataIntegrityError(f"Bad destination address for {entry.solana_address}: {e}") from e

        if address in eligible:
            raise DataIntegrityError(f"Destination address {address} is registered to more than one wallet")

        eligible[address] = raw_amount

    return eligible


def _largest_holder(eligible: Dict[str, int]) -> str:
    """Largest raw balance; ties go to the lowest address string."""
    return min(eligible.items(), key=lambda item: (-item[1], item[0]))[0]


def _proportional_claims(eligible: Dict[str, int], policy: AllocationPolicy) -> Tuple[Dict[str, int], int, str]:
    pool_total = policy.pool_total
    total_balance = sum(eligible.values())

    claims = {}
    for address, raw_amount in eligible.items():
        if policy.precision:
            # Fixed-point share, floored at both steps (reproduces legacy roots)
            share = raw_amount * policy.precision // total_balance
            claim = share * pool_total // policy.precision
        else:
            claim = raw_amount * pool_total // total_balance
        claims[address] = max(claim, policy.min_claim)

    adjustment = pool_total - sum(claims.values())
    adjusted_account = None

    if adjustment != 0:
        adjusted_account = _largest_holder(eligible)
        adjusted_claim = claims[adjusted_account] + adjustment
        if adjusted_claim < policy.min_claim:
            raise InvariantViolation(
                f"Pool of {pool_total} base units cannot cover {len(claims)} recipients "
                f"at a minimum claim of {policy.min_claim}"
            )
        claims[adjusted_account] = adjusted_claim

    if sum(claims.values()) != pool_total:
        raise InvariantViolation(f"Claims sum to {sum(claims.values())}, expected pool total {pool_total}")

    return claims, adjustment, adjusted_account


def _fixed_ratio_claims(eligible: Dict[str, int], policy: AllocationPolicy) -> Dict[str, int]:
    numerator = policy.ratio.numerator
    denominator = policy.ratio.denominator
    return {
        address: max(raw_amount * numerator // denominator, policy.min_claim)
        for address, raw_amount in eligible.items()
    }


def calculate_claim_amounts(balances: Iterable[AccountBalance], policy: AllocationPolicy) -> AllocationResult:
    """
    Compute every recipient's claim amount.

    The result depends only on the set of balances and the policy, never on
    the order balances arrive in.

    Args:
        balances: Snapshot balances (wallets with a recorded balance)
        policy: Distribution policy

    Returns:
        AllocationResult keyed by checksummed destination address

    Raises:
        ConfigurationError: If the policy is incomplete
        DataIntegrityError: If there are no balances, no non-zero balances,
                            or malformed / duplicate destination addresses
        InvariantViolation: If proportional claims do not sum to the pool
    """
    check_policy(policy)

    balances = list(balances)
    if not balances:
        raise DataIntegrityError("No users with balances found - run the snapshot first")

    eligible = _eligible_balances(balances)
    if not eligible:
        raise DataIntegrityError(f"All {len(balances)} snapshot balances are zero - nothing to allocate")

    logger.info(f"Allocating to {len(eligible)} of {len(balances)} users ({policy.mode})")

    adjustment = 0
    adjusted_account = None
    if policy.mode == "proportional":
        claims, adjustment, adjusted_account = _proportional_claims(eligible, policy)
    else:
        claims = _fixed_ratio_claims(eligible, policy)

    amounts = list(claims.values())
    total = sum(amounts)
    summary = AllocationSummary(
        recipients=len(amounts),
        total=total,
        minimum=min(amounts),
        maximum=max(amounts),
        average=Decimal(total) / len(amounts),
        adjustment=adjustment,
        adjusted_account=adjusted_account,
    )

    return AllocationResult(claims=claims, summary=summary)


def print_allocation_summary(result: AllocationResult, policy: AllocationPolicy):
    """Print claim statistics in token units for operator verification."""
    summary = result.summary
    decimals = policy.token_decimals
    symbol = policy.token_symbol

    print("\nClaim Amount Statistics:")
    if policy.mode == "proportional":
        print(f"Mode: proportional (pool {format_token_amount(policy.pool_total, decimals)} {symbol})")
        if summary.adjustment:
            print(f"Rounding adjustment: {summary.adjustment} base units -> {summary.adjusted_account}")
    else:
        ratio = Decimal(policy.ratio.numerator) / Decimal(policy.ratio.denominator)
        print(f"Mode: fixed ratio {ratio}:1 (total may differ from any pool amount)")
    print(f"Total Claim Amount: {format_token_amount(summary.total, decimals)} {symbol}")
    print(f"Number of Recipients: {summary.recipients}")
    print(f"Average Claim: {format_token_amount(int(summary.average), decimals)} {symbol}")
    print(f"Max Claim: {format_token_amount(summary.maximum, decimals)} {symbol}")
    print(f"Min Claim: {format_token_amount(summary.minimum, decimals)} {symbol}")
