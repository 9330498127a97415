"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability of what happened to the tab
2. Debugging capability for storage and camera problems
3. A record of every silent recovery (degraded save, capture fallback)

The audit logger:
- Never raises into the caller; a logging failure must not break a save
  or a capture
- Keeps the most recent events in memory so the app can show them
- Supports correlation IDs to trace related events
"""

import logging
from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from barcontrol.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through the stdlib root logger at `level`."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level, logging.INFO))


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. A bounded in-memory buffer (for the app and for tests)
    """

    def __init__(self, buffer_size: int = 200):
        self._events: deque[AuditEvent] = deque(maxlen=buffer_size)
        self._logger = structlog.get_logger("barcontrol.audit")

    @property
    def recent_events(self) -> list[AuditEvent]:
        """Buffered events, oldest first."""
        return list(self._events)

    def log(self, event: AuditEvent) -> None:
        """Log an audit event. Failures are reported, never raised."""
        self._events.append(event)

        log_dict = event.to_log_dict()
        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except (TypeError, ValueError) as e:
            # Unserializable details must not break the caller
            logging.getLogger("barcontrol.audit").error(
                "audit_log_failed event_id=%s error=%s", event.event_id, e
            )

    def log_item_added(self, item_id: str, name: str, price: str) -> None:
        self.log(AuditEventBuilder.item_added(item_id, name, price))

    def log_item_edited(self, item_id: str, name: str, price: str) -> None:
        self.log(AuditEventBuilder.item_edited(item_id, name, price))

    def log_item_duplicated(self, item_id: str, source_id: str) -> None:
        self.log(AuditEventBuilder.item_duplicated(item_id, source_id))

    def log_item_removed(self, item_id: str) -> None:
        self.log(AuditEventBuilder.item_removed(item_id))

    def log_input_rejected(self, field: str, message: str) -> None:
        self.log(AuditEventBuilder.input_rejected(field, message))

    def log_session_finalized(
        self,
        session_id: str,
        total: str,
        split_count: int,
        has_tip: bool,
        item_count: int,
    ) -> None:
        """Log a closed tab."""
        self.log(AuditEventBuilder.session_finalized(
            session_id=session_id,
            total=total,
            split_count=split_count,
            has_tip=has_tip,
            item_count=item_count,
        ))

    def log_history_cleared(self, session_count: int) -> None:
        self.log(AuditEventBuilder.history_cleared(session_count))

    def log_budget_updated(self, limit: str, location: Optional[str]) -> None:
        self.log(AuditEventBuilder.budget_updated(limit, location))

    def log_budget_exceeded(self, total: str, limit: str) -> None:
        self.log(AuditEventBuilder.budget_exceeded(total, limit))

    def log_state_loaded(self, item_count: int, session_count: int, limit: str) -> None:
        self.log(AuditEventBuilder.state_loaded(item_count, session_count, limit))

    def log_slice_load_failed(self, key: str, error_message: str) -> None:
        self.log(AuditEventBuilder.slice_load_failed(key, error_message))

    def log_save_degraded(self, key: str, stripped_sessions: int) -> None:
        self.log(AuditEventBuilder.save_degraded(key, stripped_sessions))

    def log_save_failed(self, key: str, error_message: str) -> None:
        self.log(AuditEventBuilder.save_failed(key, error_message))

    def log_capture_started(self, strategies: list[str], correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.capture_started(strategies, correlation_id))

    def log_capture_strategy_failed(
        self,
        strategy: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.capture_strategy_failed(strategy, reason, correlation_id))

    def log_capture_completed(
        self,
        strategy: str,
        width: int,
        height: int,
        size_bytes: int,
        correlation_id: UUID,
    ) -> None:
        """Log a photo accepted into a draft."""
        self.log(AuditEventBuilder.capture_completed(
            strategy=strategy,
            width=width,
            height=height,
            size_bytes=size_bytes,
            correlation_id=correlation_id,
        ))

    def log_capture_cancelled(self, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.capture_cancelled(correlation_id))

    def log_capture_unavailable(self, failures: list[str], correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.capture_unavailable(failures, correlation_id))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., one photo capture).
    Pass it through all subsequent operations.
    """
    return uuid4()
