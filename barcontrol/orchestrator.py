"""
Main Orchestrator for BarControl

This module ties the components together behind one object the
front-end talks to:
1. Tab (ledger operations, photo capture into drafts)
2. Budget (status, limit and location changes)
3. Closing the tab (preview, finalize, history)

DESIGN DECISION: State is loaded once, explicitly, by init() and then
threaded through every component. Nothing below this module keeps its
own copy of the tab or the history.
"""

from decimal import Decimal
from typing import Optional, Sequence

import structlog

from barcontrol.audit import AuditLogger
from barcontrol.budget import evaluate
from barcontrol.config import CaptureSettings, Settings, get_settings
from barcontrol.exceptions import StorageError, ValidationError
from barcontrol.ledger import Ledger, parse_price
from barcontrol.ledger.ledger import MAX_NAME_LENGTH
from barcontrol.models.consumption import (
    BudgetConfig,
    BudgetStatus,
    BudgetTier,
    ConsumptionSession,
    SplitPreview,
)
from barcontrol.services.capture import (
    CaptureStrategy,
    PhotoCapturePipeline,
    PhotoProcessor,
)
from barcontrol.services.storage import (
    FileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    PersistenceService,
    SaveOutcome,
)
from barcontrol.sessions import finalize, preview
from barcontrol.state import AppState


logger = structlog.get_logger(__name__)


class BarControlApp:
    """
    Application facade over ledger, budget, finalizer and history.

    Usage:
        app = create_app()
        app.init()
        app.ledger.add_item("Beer", "10")
        app.budget_status().tier
        app.finish_session(split_count=2, include_tip=True)
    """

    def __init__(
        self,
        persistence: PersistenceService,
        audit_logger: Optional[AuditLogger] = None,
        capture_settings: Optional[CaptureSettings] = None,
    ):
        self._persistence = persistence
        self._audit_logger = audit_logger or AuditLogger()
        self._capture_settings = capture_settings or CaptureSettings()
        self._state: Optional[AppState] = None
        self._ledger: Optional[Ledger] = None
        self._last_tier: Optional[BudgetTier] = None
        self.last_save_outcome: Optional[SaveOutcome] = None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def init(self) -> AppState:
        """Load persisted state. Must be called before anything else."""
        self._state = self._persistence.load()
        self._ledger = Ledger(self._state, self._persistence, self._audit_logger)
        self._last_tier = None
        return self._state

    @property
    def is_initialized(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> AppState:
        if self._state is None:
            raise RuntimeError("BarControlApp.init() has not been called")
        return self._state

    @property
    def ledger(self) -> Ledger:
        if self._ledger is None:
            raise RuntimeError("BarControlApp.init() has not been called")
        return self._ledger

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    @property
    def history(self) -> tuple[ConsumptionSession, ...]:
        """Closed sessions, newest first."""
        return tuple(self.state.history)

    @property
    def budget(self) -> BudgetConfig:
        return self.state.budget

    # =========================================================================
    # BUDGET
    # =========================================================================

    def budget_status(self) -> BudgetStatus:
        """
        Evaluate the current tab against the budget.

        The exceeded event is logged when the tab crosses into EXCEEDED,
        not on every evaluation.
        """
        status = evaluate(self.ledger.total(), self.budget.limit)
        if status.alert and self._last_tier != BudgetTier.EXCEEDED:
            self._audit_logger.log_budget_exceeded(str(status.total), str(status.limit))
        self._last_tier = status.tier
        return status

    def set_budget(self, limit, location: Optional[str] = None) -> BudgetConfig:
        """
        Change the budget limit and location. 0 means no limit.

        Raises:
            ValidationError: If the limit is not a number >= 0, or the
                             location is too long
        """
        try:
            clean_limit = parse_price(limit)
        except ValidationError as e:
            self._audit_logger.log_input_rejected("limit", e.message)
            raise ValidationError("limit", e.message) from e

        location = self._clean_location(location)

        budget = BudgetConfig(limit=clean_limit, location=location)
        self.state.budget = budget

        self._audit_logger.log_budget_updated(str(budget.limit), budget.location)
        self.last_save_outcome = self._persistence.save_budget(budget)
        return budget

    # =========================================================================
    # CLOSING THE TAB
    # =========================================================================

    def preview_split(self, split_count: int, include_tip: bool) -> SplitPreview:
        """
        What finish_session() would produce, without changing anything.

        Raises:
            ValidationError: If split_count < 1
        """
        return preview(self.ledger.items, split_count, include_tip)

    def finish_session(
        self,
        split_count: int = 1,
        include_tip: bool = False,
        location: Optional[str] = None,
    ) -> ConsumptionSession:
        """
        Close the tab: record it at the top of the history and empty it.

        The session is labelled with `location`, or with the budget's
        location when none is given.

        Raises:
            ValidationError: If the tab is empty or split_count < 1
        """
        if self.ledger.is_empty():
            self._audit_logger.log_input_rejected("items", "Nothing to finalize")
            raise ValidationError("items", "Nothing to finalize")

        if location is None:
            location = self.budget.location
        session = finalize(
            self.ledger.items,
            split_count,
            include_tip,
            location=self._clean_location(location),
        )

        self.state.history.insert(0, session)
        self.last_save_outcome = self._persistence.save_history(self.state.history)
        self.ledger.clear()
        self._last_tier = None

        self._audit_logger.log_session_finalized(
            session_id=session.id,
            total=str(session.total),
            split_count=session.split_count,
            has_tip=session.has_tip,
            item_count=session.item_count,
        )
        return session

    def clear_history(self) -> int:
        """
        Delete every closed session. Asking the user first is the UI's job.

        Returns:
            Number of sessions deleted
        """
        count = len(self.state.history)
        self.state.history.clear()
        self.last_save_outcome = self._persistence.save_history(self.state.history)
        self._audit_logger.log_history_cleared(count)
        return count

    def _clean_location(self, location: Optional[str]) -> Optional[str]:
        location = (location or "").strip() or None
        if location is not None and len(location) > MAX_NAME_LENGTH:
            message = f"Location cannot exceed {MAX_NAME_LENGTH} characters"
            self._audit_logger.log_input_rejected("location", message)
            raise ValidationError("location", message)
        return location

    def history_total(self) -> Decimal:
        """Sum of final amounts (total + tip) across the history."""
        return sum((session.final_total for session in self.state.history), Decimal("0"))

    # =========================================================================
    # PHOTO CAPTURE
    # =========================================================================

    def capture_pipeline(self, strategies: Sequence[CaptureStrategy]) -> PhotoCapturePipeline:
        """Pipeline over `strategies`, processing photos per the capture settings."""
        return PhotoCapturePipeline(
            strategies,
            PhotoProcessor.from_settings(self._capture_settings),
            self._audit_logger,
        )


def create_store(settings: Settings) -> KeyValueStore:
    """
    File-backed store per the storage settings, or an in-memory one if
    the storage directory cannot be used.
    """
    storage = settings.storage
    try:
        return FileKeyValueStore(storage.directory, capacity_bytes=storage.capacity_bytes)
    except StorageError as e:
        # Keep running for this session; nothing will survive a restart
        logger.warning("storage_unavailable", error=str(e), fallback="memory")
        return MemoryKeyValueStore(capacity_bytes=storage.capacity_bytes)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> BarControlApp:
    """
    Factory function to create the application.

    Args:
        settings: Defaults to get_settings()
        store: Overrides the store built from the storage settings
        audit_logger: Shared audit logger; a local one is created if omitted

    Returns:
        An uninitialized BarControlApp; call init() before use
    """
    settings = settings or get_settings()
    audit_logger = audit_logger or AuditLogger()

    persistence = PersistenceService(
        store or create_store(settings),
        audit_logger=audit_logger,
        history_photo_keep=settings.storage.history_photo_keep,
        default_budget_limit=settings.app.default_budget_limit,
    )
    return BarControlApp(
        persistence,
        audit_logger=audit_logger,
        capture_settings=settings.capture,
    )
