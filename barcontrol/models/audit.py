"""
Audit Models for BarControl

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of what happened to the tab
2. Debugging information when storage or the camera misbehave
3. A record of recoveries (degraded saves, capture fallbacks)

DESIGN DECISION: Audit events are written once and never modified.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Each user action and each recovery path has its own event type.
    """
    # Ledger
    ITEM_ADDED = "item_added"
    ITEM_EDITED = "item_edited"
    ITEM_DUPLICATED = "item_duplicated"
    ITEM_REMOVED = "item_removed"
    INPUT_REJECTED = "input_rejected"

    # Sessions and history
    SESSION_FINALIZED = "session_finalized"
    HISTORY_CLEARED = "history_cleared"

    # Budget
    BUDGET_UPDATED = "budget_updated"
    BUDGET_EXCEEDED = "budget_exceeded"

    # Persistence
    STATE_LOADED = "state_loaded"
    SLICE_LOAD_FAILED = "slice_load_failed"
    SAVE_DEGRADED = "save_degraded"
    SAVE_FAILED = "save_failed"

    # Photo capture
    CAPTURE_STARTED = "capture_started"
    CAPTURE_STRATEGY_FAILED = "capture_strategy_failed"
    CAPTURE_COMPLETED = "capture_completed"
    CAPTURE_CANCELLED = "capture_cancelled"
    CAPTURE_UNAVAILABLE = "capture_unavailable"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'item', 'session', 'photo')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one capture attempt)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.item_added(item_id, name, price)
        event = AuditEventBuilder.save_degraded(key, stripped_sessions)
    """

    @staticmethod
    def item_added(item_id: str, name: str, price: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ITEM_ADDED,
            entity_type="item",
            entity_id=item_id,
            description=f"Item added: {name}",
            details={"name": name, "price": price},
            is_user_action=True,
        )

    @staticmethod
    def item_edited(item_id: str, name: str, price: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ITEM_EDITED,
            entity_type="item",
            entity_id=item_id,
            description=f"Item edited: {name}",
            details={"name": name, "price": price},
            is_user_action=True,
        )

    @staticmethod
    def item_duplicated(item_id: str, source_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ITEM_DUPLICATED,
            entity_type="item",
            entity_id=item_id,
            description="Item duplicated",
            details={"source_id": source_id},
            is_user_action=True,
        )

    @staticmethod
    def item_removed(item_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ITEM_REMOVED,
            entity_type="item",
            entity_id=item_id,
            description="Item removed from the tab",
            is_user_action=True,
        )

    @staticmethod
    def input_rejected(field: str, message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INPUT_REJECTED,
            severity=AuditSeverity.WARNING,
            description=f"Input rejected: {field}",
            details={"field": field},
            error_message=message,
            is_user_action=True,
        )

    @staticmethod
    def session_finalized(
        session_id: str,
        total: str,
        split_count: int,
        has_tip: bool,
        item_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_FINALIZED,
            entity_type="session",
            entity_id=session_id,
            description=f"Tab closed: {item_count} items, split {split_count} ways",
            details={
                "total": total,
                "split_count": split_count,
                "has_tip": has_tip,
                "item_count": item_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def history_cleared(session_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HISTORY_CLEARED,
            entity_type="history",
            description=f"History cleared ({session_count} sessions)",
            details={"session_count": session_count},
            is_user_action=True,
        )

    @staticmethod
    def budget_updated(limit: str, location: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_UPDATED,
            entity_type="budget",
            description=f"Budget limit set to {limit}",
            details={"limit": limit, "location": location},
            is_user_action=True,
        )

    @staticmethod
    def budget_exceeded(total: str, limit: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_EXCEEDED,
            severity=AuditSeverity.WARNING,
            entity_type="budget",
            description="Budget limit reached",
            details={"total": total, "limit": limit},
        )

    @staticmethod
    def state_loaded(item_count: int, session_count: int, limit: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_LOADED,
            description="Application state loaded",
            details={
                "item_count": item_count,
                "session_count": session_count,
                "limit": limit,
            },
        )

    @staticmethod
    def slice_load_failed(key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SLICE_LOAD_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="storage_key",
            entity_id=key,
            description=f"Stored value for '{key}' unreadable, using default",
            error_message=error_message,
        )

    @staticmethod
    def save_degraded(key: str, stripped_sessions: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_DEGRADED,
            severity=AuditSeverity.WARNING,
            entity_type="storage_key",
            entity_id=key,
            description=f"Storage full, saved '{key}' without older photos",
            details={"stripped_sessions": stripped_sessions},
        )

    @staticmethod
    def save_failed(key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="storage_key",
            entity_id=key,
            description=f"Could not persist '{key}', keeping it in memory only",
            error_message=error_message,
        )

    @staticmethod
    def capture_started(strategies: list[str], correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_STARTED,
            entity_type="photo",
            correlation_id=correlation_id,
            description="Photo capture started",
            details={"strategies": strategies},
            is_user_action=True,
        )

    @staticmethod
    def capture_strategy_failed(
        strategy: str,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_STRATEGY_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="photo",
            correlation_id=correlation_id,
            description=f"Capture strategy '{strategy}' failed, trying next",
            details={"strategy": strategy},
            error_message=reason,
        )

    @staticmethod
    def capture_completed(
        strategy: str,
        width: int,
        height: int,
        size_bytes: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_COMPLETED,
            entity_type="photo",
            correlation_id=correlation_id,
            description=f"Photo captured via '{strategy}' ({width}x{height})",
            details={
                "strategy": strategy,
                "width": width,
                "height": height,
                "size_bytes": size_bytes,
            },
        )

    @staticmethod
    def capture_cancelled(correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_CANCELLED,
            entity_type="photo",
            correlation_id=correlation_id,
            description="Photo capture cancelled by user",
            is_user_action=True,
        )

    @staticmethod
    def capture_unavailable(failures: list[str], correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_UNAVAILABLE,
            severity=AuditSeverity.ERROR,
            entity_type="photo",
            correlation_id=correlation_id,
            description="No capture strategy succeeded",
            details={"failures": failures},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
