"""
Display formatting for the front-end.

Amounts are kept at full precision everywhere else; this is the only
place they are rounded, to two places, half up.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union


CENTS = Decimal("0.01")

# Swap US grouping for pt-BR: "1,234.56" -> "1.234,56"
_PT_BR_SEPARATORS = str.maketrans({",": ".", ".": ","})


def format_currency(value: Union[Decimal, int, float], symbol: str = "R$") -> str:
    """
    Format an amount the way the tab shows it.

    >>> format_currency(Decimal("1234.5"))
    'R$ 1.234,50'
    """
    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    digits = f"{abs(amount):,.2f}".translate(_PT_BR_SEPARATORS)
    return f"{sign}{symbol} {digits}"


def format_timestamp(value: datetime, tz: Optional[timezone] = None) -> str:
    """dd/mm/yyyy HH:MM in `tz` (the machine's local zone by default)."""
    return value.astimezone(tz).strftime("%d/%m/%Y %H:%M")


def format_date(value: datetime, tz: Optional[timezone] = None) -> str:
    return value.astimezone(tz).strftime("%d/%m/%Y")
