"""
Budget Monitor

Maps (tab total, budget limit) to a status tier. Stateless: the tier is
recomputed from scratch on every call, so there is no hysteresis and no
memory of previous alerts.

Tier boundaries, as a share of the limit:

    limit <= 0          UNBOUNDED
    [0%, 50%)           SAFE
    [50%, 90%)          CAUTION
    [90%, 100%)         NEAR
    [100%, ...)         EXCEEDED  (the only tier that alerts)

Boundaries are compared in Decimal by scaling the limit rather than
dividing the total, so 50%, 90% and 100% land in the higher tier exactly.
"""

from decimal import Decimal

from barcontrol.models.consumption import BudgetStatus, BudgetTier


CAUTION_THRESHOLD = Decimal("0.50")
NEAR_THRESHOLD = Decimal("0.90")

TIER_MESSAGES = {
    BudgetTier.UNBOUNDED: "No budget limit set",
    BudgetTier.SAFE: "Within budget",
    BudgetTier.CAUTION: "Watch your spending",
    BudgetTier.NEAR: "Almost at your limit",
    BudgetTier.EXCEEDED: "Budget limit reached!",
}


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def classify(total: Decimal, limit: Decimal) -> BudgetTier:
    """Tier for a total against a limit."""
    if limit <= 0:
        return BudgetTier.UNBOUNDED
    if total >= limit:
        return BudgetTier.EXCEEDED
    if total >= limit * NEAR_THRESHOLD:
        return BudgetTier.NEAR
    if total >= limit * CAUTION_THRESHOLD:
        return BudgetTier.CAUTION
    return BudgetTier.SAFE


def usage_percentage(total: Decimal, limit: Decimal) -> float:
    """Share of the limit consumed, clamped to [0, 100]. 0 when unbounded."""
    if limit <= 0:
        return 0.0
    percentage = total * 100 / limit
    return float(min(max(percentage, Decimal("0")), Decimal("100")))


def evaluate(total, limit) -> BudgetStatus:
    """
    Evaluate the tab total against the budget limit.

    Args:
        total: Current tab total
        limit: Budget limit (0 or less means no limit)

    Returns:
        BudgetStatus with tier, alert flag, clamped percentage and message
    """
    total = _as_decimal(total)
    limit = _as_decimal(limit)
    tier = classify(total, limit)
    return BudgetStatus(
        total=total,
        limit=limit,
        tier=tier,
        alert=tier == BudgetTier.EXCEEDED,
        percentage=usage_percentage(total, limit),
        message=TIER_MESSAGES[tier],
    )
