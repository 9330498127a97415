"""Budget monitoring package."""

from barcontrol.budget.monitor import classify, evaluate, usage_percentage

__all__ = ["classify", "evaluate", "usage_percentage"]
