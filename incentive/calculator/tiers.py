# ==============================================================================
# incentive/calculator/tiers.py
# ------------------------------------------------------------------------------
# Marginal tiered payout: each tier's rate applies only to the slice of the
# credited amount that falls inside the tier.
# ==============================================================================

from decimal import Decimal

from incentive.calculator.values import HUNDRED, ZERO, parse_decimal
from incentive.models import PayoutTier


def _as_tier(tier):
    if isinstance(tier, PayoutTier):
        return tier
    return PayoutTier.from_dict(tier)


def calculate_tiered_payout(amount, tiers):
    """
    Computes the base payout for a credited amount.

    Args:
        amount (Decimal): The agent's credited amount.
        tiers (list): PayoutTier objects (or their dict form), in any order.

    Returns:
        Decimal: The payout. Zero for a non-positive amount or no tiers.
    """
    if not isinstance(amount, Decimal):
        amount = parse_decimal(amount)
    if amount is None or amount <= ZERO or not tiers:
        return ZERO

    total = ZERO
    for tier in sorted((_as_tier(t) for t in tiers), key=lambda t: t.lower_bound):
        if amount <= tier.lower_bound:
            break

        upper = tier.upper_bound
        top = amount if upper is None else min(amount, upper)
        in_tier = top - tier.lower_bound
        if in_tier <= ZERO:
            continue

        if tier.is_percentage:
            total += in_tier * tier.rate / HUNDRED
        else:
            # Non-percentage rates are a per-unit multiplier of the slice.
            total += in_tier * tier.rate

        if upper is not None and amount <= upper:
            break

    return total
