"""
Exception hierarchy for BarControl.

Every error raised by the core derives from BarControlError so the
front-end can catch the whole family in one place. Which errors are
surfaced and which are recovered locally is decided by the component
that owns the concern:

- ValidationError: bad user input, raised before any mutation
- NotFoundError: edit/duplicate referencing an item that is gone
- StorageError / StorageQuotaError: recovered by the persistence service
- CaptureError family: recovered by the capture strategy chain, except
  CaptureUnavailableError which means every strategy failed
"""


class BarControlError(Exception):
    """Base exception for all BarControl errors."""
    pass


class ValidationError(BarControlError):
    """User input was rejected (empty name, bad price, bad split count)."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class NotFoundError(BarControlError):
    """Operation referenced an item id that is not in the ledger."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item not found: {item_id}")


class StorageError(BarControlError):
    """Base exception for key-value store operations."""
    pass


class StorageQuotaError(StorageError):
    """The store has no room left for the value being written."""

    def __init__(self, key: str, required_bytes: int, capacity_bytes: int):
        self.key = key
        self.required_bytes = required_bytes
        self.capacity_bytes = capacity_bytes
        super().__init__(
            f"Storage quota exceeded writing '{key}': "
            f"{required_bytes} bytes needed, capacity is {capacity_bytes}"
        )


class CaptureError(BarControlError):
    """Base exception for photo capture errors."""
    pass


class CaptureDeniedError(CaptureError):
    """A capture strategy was denied or failed; the next one should be tried."""
    pass


class CaptureCancelledError(CaptureError):
    """The user abandoned the capture."""
    pass


class PhotoProcessingError(CaptureError):
    """The acquired payload could not be decoded or re-encoded."""
    pass


class CaptureUnavailableError(CaptureError):
    """Every capture strategy in the chain failed."""

    def __init__(self, failures: list[tuple[str, str]]):
        self.failures = failures
        summary = "; ".join(f"{name}: {reason}" for name, reason in failures)
        super().__init__(f"No capture strategy succeeded ({summary})")
