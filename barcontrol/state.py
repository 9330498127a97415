"""
Application State

The single mutable object shared by the ledger, the history operations
and the persistence service. It is created by PersistenceService.load()
and passed explicitly to every component that needs it; nothing in the
package keeps its own module-level copy.
"""

from typing import Optional

from barcontrol.models.consumption import (
    BudgetConfig,
    ConsumptionItem,
    ConsumptionSession,
)


class AppState:
    """
    In-memory state of one running app.

    Attributes:
        items: Active tab, newest first
        history: Closed sessions, newest first
        budget: Current budget configuration
    """

    def __init__(
        self,
        items: Optional[list[ConsumptionItem]] = None,
        history: Optional[list[ConsumptionSession]] = None,
        budget: Optional[BudgetConfig] = None,
    ):
        self.items: list[ConsumptionItem] = list(items or [])
        self.history: list[ConsumptionSession] = list(history or [])
        self.budget: BudgetConfig = budget or BudgetConfig()

    def __repr__(self) -> str:
        return (
            f"AppState(items={len(self.items)}, history={len(self.history)}, "
            f"limit={self.budget.limit})"
        )
