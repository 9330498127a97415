"""
Data Models Package

This package contains all Pydantic models used in BarControl.
All data flowing through the system must conform to these schemas.
"""

from barcontrol.models.consumption import (
    SERVICE_CHARGE_RATE,
    BudgetConfig,
    BudgetStatus,
    BudgetTier,
    ConsumptionItem,
    ConsumptionSession,
    SplitPreview,
    new_id,
    utc_now,
)
from barcontrol.models.capture import (
    CaptureConstraints,
    CaptureState,
    CapturedPhoto,
)
from barcontrol.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Consumption models
    "SERVICE_CHARGE_RATE",
    "BudgetConfig",
    "BudgetStatus",
    "BudgetTier",
    "ConsumptionItem",
    "ConsumptionSession",
    "SplitPreview",
    "new_id",
    "utc_now",
    # Capture models
    "CaptureConstraints",
    "CaptureState",
    "CapturedPhoto",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
