"""
Core Data Models for BarControl

These models define the schemas for everything the app keeps:
items on the current tab, closed sessions in the history, and the
budget configuration.

DESIGN DECISION: The persisted JSON shape is the one the first version
of the app wrote (camelCase keys, money as JSON numbers, instants as
epoch milliseconds). Old history must stay readable, so every field
added since then is optional with a default.

Money is Decimal in memory and only becomes a float on the wire.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)
from pydantic.alias_generators import to_camel


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

SERVICE_CHARGE_RATE = Decimal("0.10")


def utc_now() -> datetime:
    """Current UTC instant, truncated to the millisecond the wire format keeps."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def new_id() -> str:
    """Fresh random identifier for items and sessions."""
    return uuid4().hex


def _coerce_instant(value: Any) -> Any:
    """Accept epoch milliseconds (the stored form) as well as datetimes."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        millis = int(value)
        return EPOCH + timedelta(milliseconds=millis)
    return value


def _instant_to_millis(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - EPOCH) // timedelta(milliseconds=1)


Money = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]

EpochMillis = Annotated[
    datetime,
    BeforeValidator(_coerce_instant),
    PlainSerializer(_instant_to_millis, return_type=int, when_used="json"),
]


# =============================================================================
# ENUMS
# =============================================================================

class BudgetTier(str, Enum):
    """
    How close the tab is to the budget limit.

    Only EXCEEDED raises an alert; NEAR is a visual warning.
    """
    UNBOUNDED = "unbounded"  # No limit configured
    SAFE = "safe"            # Below 50%
    CAUTION = "caution"      # 50% up to 90%
    NEAR = "near"            # 90% up to 100%
    EXCEEDED = "exceeded"    # At or over the limit


# =============================================================================
# PERSISTED MODELS
# =============================================================================

class ConsumptionItem(BaseModel):
    """
    One thing ordered on the current tab.

    Items are only mutated through the Ledger. When a session is
    finalized the session receives a deep copy; the live item is
    discarded with the ledger.

    Name rules (non-blank, length cap) apply to user input and are
    enforced by the Ledger. Stored records from older versions may not
    follow them and must still load.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Unique item token"
    )
    name: str = Field(
        ...,
        description="What was ordered"
    )
    price: Money = Field(
        ...,
        ge=0,
        description="Price of the item"
    )
    timestamp: EpochMillis = Field(
        default_factory=utc_now,
        description="When the item was added to the tab"
    )
    photo: Optional[str] = Field(
        default=None,
        description="Encoded photo as a data URL"
    )

    @field_validator('price')
    @classmethod
    def validate_finite_price(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError("Price must be a finite number")
        return v


class ConsumptionSession(BaseModel):
    """
    A closed tab.

    Created once by the finalizer and immutable afterwards. The split
    arithmetic is stored rather than recomputed so history shows exactly
    what was charged at the table.

    Invariants for sessions created by this version:
        total == sum(item.price for item in items)
        tip_amount == total * 0.10 if has_tip else 0
        total_per_person == (total + tip_amount) / split_count
    """
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Unique session token"
    )
    items: tuple[ConsumptionItem, ...] = Field(
        default=(),
        description="Snapshot of the tab when it was closed"
    )
    date: EpochMillis = Field(
        default_factory=utc_now,
        description="When the tab was closed"
    )
    total: Money = Field(
        ...,
        ge=0,
        description="Sum of item prices"
    )
    split_count: int = Field(
        default=1,
        ge=1,
        description="Number of people sharing the bill"
    )
    has_tip: bool = Field(
        default=False,
        description="Whether the 10% service charge was added"
    )
    tip_amount: Money = Field(
        default=Decimal("0"),
        ge=0,
        description="Service charge amount"
    )
    total_per_person: Money = Field(
        ...,
        ge=0,
        description="(total + tip_amount) / split_count"
    )
    location: Optional[str] = Field(
        default=None,
        description="Where the outing took place"
    )

    @property
    def final_total(self) -> Decimal:
        """Total actually paid, service charge included."""
        return self.total + self.tip_amount

    @property
    def item_count(self) -> int:
        return len(self.items)


class BudgetConfig(BaseModel):
    """
    How much the user plans to spend.

    Process-wide and persisted; finalizing a session does not reset it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    limit: Money = Field(
        default=Decimal("0"),
        ge=0,
        description="Spending limit (0 = no limit)"
    )
    location: Optional[str] = Field(
        default=None,
        description="Label for where the outing is"
    )

    @field_validator('limit')
    @classmethod
    def validate_finite_limit(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError("Budget limit must be a finite number")
        return v

    @field_validator('location')
    @classmethod
    def blank_location_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @property
    def is_unbounded(self) -> bool:
        return self.limit <= 0


# =============================================================================
# DERIVED (NOT PERSISTED) MODELS
# =============================================================================

class BudgetStatus(BaseModel):
    """Result of evaluating the tab total against the budget limit."""

    total: Decimal
    limit: Decimal
    tier: BudgetTier
    alert: bool = Field(
        default=False,
        description="True only when the limit has been reached"
    )
    percentage: float = Field(
        default=0.0,
        ge=0.0,
        le=100.0,
        description="Share of the limit consumed, clamped to [0, 100]"
    )
    message: str = Field(
        default="",
        description="Short status line for the progress bar"
    )


class SplitPreview(BaseModel):
    """What closing the tab would cost, before it is actually closed."""

    subtotal: Decimal
    split_count: int = Field(ge=1)
    has_tip: bool
    tip_amount: Decimal
    final_total: Decimal
    total_per_person: Decimal
