"""Consumption ledger package."""

from barcontrol.ledger.draft import ItemDraft
from barcontrol.ledger.ledger import KEEP_PHOTO, Ledger, parse_price, validate_name

__all__ = [
    "ItemDraft",
    "KEEP_PHOTO",
    "Ledger",
    "parse_price",
    "validate_name",
]
