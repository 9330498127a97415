"""
Consumption Ledger

The ordered list of things ordered on the current tab, newest first.

RULES:
1. Input is validated before anything changes. A rejected add or edit
   leaves the tab exactly as it was.
2. Every successful mutation asks the persistence service to save the
   tab. A failed save never undoes the mutation.
3. The total is recomputed from the items on every call.
4. Removing is idempotent and there is no undo; asking the user to
   confirm is the front-end's job.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from barcontrol.audit import AuditLogger
from barcontrol.exceptions import NotFoundError, ValidationError
from barcontrol.ledger.draft import ItemDraft, PriceInput
from barcontrol.models.consumption import ConsumptionItem, new_id, utc_now
from barcontrol.services.storage.persistence import PersistenceService, SaveOutcome
from barcontrol.state import AppState


MAX_NAME_LENGTH = 120


class _KeepPhoto:
    def __repr__(self) -> str:
        return "KEEP_PHOTO"


KEEP_PHOTO = _KeepPhoto()


def parse_price(value: PriceInput) -> Decimal:
    """
    Turn user input into a price.

    Accepts Decimal, int, float or text. Text may use a comma as decimal
    separator ("12,50") and a dot for thousands ("1.234,50").

    Raises:
        ValidationError: If the value is not a finite number >= 0
    """
    if isinstance(value, bool):
        raise ValidationError("price", "Price must be a number")

    if isinstance(value, Decimal):
        price = value
    elif isinstance(value, int):
        price = Decimal(value)
    elif isinstance(value, float):
        price = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValidationError("price", "Price is required")
        if "," in text:
            text = text.replace(".", "").replace(",", ".")
        try:
            price = Decimal(text)
        except InvalidOperation:
            raise ValidationError("price", f"Not a number: {value!r}")
    else:
        raise ValidationError("price", "Price must be a number")

    if not price.is_finite():
        raise ValidationError("price", "Price must be a finite number")
    if price < 0:
        raise ValidationError("price", "Price cannot be negative")
    return price


def validate_name(name: Optional[str]) -> str:
    """
    Raises:
        ValidationError: If the name is empty or too long
    """
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("name", "Name is required")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValidationError("name", f"Name cannot exceed {MAX_NAME_LENGTH} characters")
    return cleaned


class Ledger:
    """
    Operations on the active tab held in an AppState.

    Usage:
        ledger = Ledger(state, persistence)
        beer = ledger.add_item("Beer", "10")
        ledger.duplicate_item(beer.id)
        ledger.total()  # Decimal("20")
    """

    def __init__(
        self,
        state: AppState,
        persistence: Optional[PersistenceService] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._state = state
        self._persistence = persistence
        self._audit_logger = audit_logger or AuditLogger()
        self.last_save_outcome: Optional[SaveOutcome] = None

    @property
    def items(self) -> tuple[ConsumptionItem, ...]:
        """Snapshot of the tab, newest first."""
        return tuple(self._state.items)

    @property
    def count(self) -> int:
        return len(self._state.items)

    def is_empty(self) -> bool:
        return not self._state.items

    def total(self) -> Decimal:
        """Sum of all item prices."""
        return sum((item.price for item in self._state.items), Decimal("0"))

    def get_item(self, item_id: str) -> ConsumptionItem:
        """
        Raises:
            NotFoundError: If no item has this id
        """
        return self._state.items[self._index_of(item_id)]

    def add_item(
        self,
        name: str,
        price: PriceInput,
        photo: Optional[str] = None,
    ) -> ConsumptionItem:
        """
        Put a new item at the top of the tab.

        Raises:
            ValidationError: If the name is empty or the price is invalid
        """
        clean_name, clean_price = self._validate(name, price)

        item = ConsumptionItem(
            id=new_id(),
            name=clean_name,
            price=clean_price,
            timestamp=utc_now(),
            photo=photo,
        )
        self._state.items.insert(0, item)

        self._audit_logger.log_item_added(item.id, item.name, str(item.price))
        self._persist()
        return item

    def edit_item(
        self,
        item_id: str,
        name: str,
        price: PriceInput,
        photo: Union[Optional[str], _KeepPhoto] = KEEP_PHOTO,
    ) -> ConsumptionItem:
        """
        Replace name, price and (optionally) photo of an existing item.

        The id, the original timestamp and the position in the tab are kept.
        Pass photo=None to remove the photo; leave it out to keep it.

        Raises:
            NotFoundError: If no item has this id
            ValidationError: If the name is empty or the price is invalid
        """
        index = self._index_of(item_id)
        clean_name, clean_price = self._validate(name, price)

        current = self._state.items[index]
        update = {"name": clean_name, "price": clean_price}
        if not isinstance(photo, _KeepPhoto):
            update["photo"] = photo
        edited = current.model_copy(update=update)
        self._state.items[index] = edited

        self._audit_logger.log_item_edited(edited.id, edited.name, str(edited.price))
        self._persist()
        return edited

    def duplicate_item(self, item_id: str) -> ConsumptionItem:
        """
        Order the same thing again: a copy with a fresh id and timestamp,
        placed at the top of the tab.

        Raises:
            NotFoundError: If no item has this id
        """
        source = self.get_item(item_id)
        duplicate = source.model_copy(update={"id": new_id(), "timestamp": utc_now()})
        self._state.items.insert(0, duplicate)

        self._audit_logger.log_item_duplicated(duplicate.id, source.id)
        self._persist()
        return duplicate

    def remove_item(self, item_id: str) -> bool:
        """
        Delete an item. Removing an id that is not on the tab does nothing.

        Returns:
            True if an item was removed
        """
        try:
            index = self._index_of(item_id)
        except NotFoundError:
            return False

        del self._state.items[index]

        self._audit_logger.log_item_removed(item_id)
        self._persist()
        return True

    def clear(self) -> None:
        """Empty the tab (used when a session is finalized)."""
        self._state.items.clear()
        self._persist()

    def commit_draft(self, draft: ItemDraft) -> ConsumptionItem:
        """
        Turn a form draft into an add (new draft) or an edit (draft of an
        existing item), photo included.

        Raises:
            NotFoundError: If the draft edits an item that is gone
            ValidationError: If the draft's name or price is invalid
        """
        if draft.is_edit:
            return self.edit_item(draft.item_id, draft.name, draft.price, photo=draft.photo)
        return self.add_item(draft.name, draft.price, photo=draft.photo)

    def _index_of(self, item_id: str) -> int:
        for index, item in enumerate(self._state.items):
            if item.id == item_id:
                return index
        raise NotFoundError(item_id)

    def _validate(self, name: str, price: PriceInput) -> tuple[str, Decimal]:
        try:
            return validate_name(name), parse_price(price)
        except ValidationError as e:
            self._audit_logger.log_input_rejected(e.field, e.message)
            raise

    def _persist(self) -> None:
        if self._persistence is not None:
            self.last_save_outcome = self._persistence.save_items(self._state.items)
