"""
Item Draft

What the add/edit form holds while the user is typing and taking a
photo. Nothing in a draft reaches the ledger until the draft is
committed with Ledger.commit_draft(); abandoning the form just drops it.
"""

from decimal import Decimal
from typing import Optional, Union

from barcontrol.models.consumption import ConsumptionItem


PriceInput = Union[Decimal, int, float, str]


class ItemDraft:
    """In-progress item for the add/edit form."""

    def __init__(
        self,
        name: str = "",
        price: PriceInput = "",
        photo: Optional[str] = None,
        item_id: Optional[str] = None,
    ):
        self.name = name
        self.price = price
        self.photo = photo
        self.item_id = item_id

    @classmethod
    def from_item(cls, item: ConsumptionItem) -> "ItemDraft":
        """Draft pre-filled for editing an existing item."""
        return cls(
            name=item.name,
            price=item.price,
            photo=item.photo,
            item_id=item.id,
        )

    @property
    def is_edit(self) -> bool:
        return self.item_id is not None

    def attach_photo(self, photo: str) -> None:
        self.photo = photo

    def clear_photo(self) -> None:
        self.photo = None

    def __repr__(self) -> str:
        return (
            f"ItemDraft(name={self.name!r}, price={self.price!r}, "
            f"has_photo={self.photo is not None}, item_id={self.item_id!r})"
        )
