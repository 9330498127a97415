"""
Session Finalizer

Closes a tab into an immutable ConsumptionSession.

The finalizer is a pure computation over its inputs: it reads the items
it is given and returns a new session. Clearing the ledger and putting
the session at the top of the history is the caller's job.

ARITHMETIC:
    total            = sum of item prices, at call time
    tip_amount       = total * 0.10 if include_tip else 0
    total_per_person = (total + tip_amount) / split_count

Values are kept at full Decimal precision so the stored session matches
its own invariants exactly; rounding happens when amounts are displayed.
"""

from decimal import Decimal
from typing import Iterable, Optional

from barcontrol.exceptions import ValidationError
from barcontrol.models.consumption import (
    SERVICE_CHARGE_RATE,
    ConsumptionItem,
    ConsumptionSession,
    SplitPreview,
    new_id,
    utc_now,
)


def _validate_split_count(split_count: int) -> int:
    if isinstance(split_count, bool) or not isinstance(split_count, int):
        raise ValidationError("split_count", "Split count must be a whole number")
    if split_count < 1:
        raise ValidationError("split_count", "Split count must be at least 1")
    return split_count


def _subtotal(items: Iterable[ConsumptionItem]) -> Decimal:
    return sum((item.price for item in items), Decimal("0"))


def preview(
    items: Iterable[ConsumptionItem],
    split_count: int,
    include_tip: bool,
) -> SplitPreview:
    """
    Compute what closing the tab would cost without closing it.

    Raises:
        ValidationError: If split_count < 1
    """
    split_count = _validate_split_count(split_count)
    subtotal = _subtotal(items)
    tip_amount = subtotal * SERVICE_CHARGE_RATE if include_tip else Decimal("0")
    final_total = subtotal + tip_amount
    return SplitPreview(
        subtotal=subtotal,
        split_count=split_count,
        has_tip=include_tip,
        tip_amount=tip_amount,
        final_total=final_total,
        total_per_person=final_total / split_count,
    )


def finalize(
    items: Iterable[ConsumptionItem],
    split_count: int,
    include_tip: bool,
    location: Optional[str] = None,
) -> ConsumptionSession:
    """
    Build the session record for a closed tab.

    The session holds deep copies of the items, so later changes to the
    live tab never reach the history.

    Args:
        items: Items on the tab, newest first
        split_count: Number of people sharing the bill (>= 1)
        include_tip: Add the 10% service charge
        location: Optional label for where the outing was

    Raises:
        ValidationError: If split_count < 1
    """
    snapshot = tuple(item.model_copy(deep=True) for item in items)
    split = preview(snapshot, split_count, include_tip)

    return ConsumptionSession(
        id=new_id(),
        items=snapshot,
        date=utc_now(),
        total=split.subtotal,
        split_count=split.split_count,
        has_tip=split.has_tip,
        tip_amount=split.tip_amount,
        total_per_person=split.total_per_person,
        location=(location or "").strip() or None,
    )
