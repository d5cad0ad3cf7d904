"""
Search Budgets
==============

Caller-imposed cutoffs for searches and full-dataset scans. An exhausted
budget ends the operation early with its partial answer; it never raises.
"""

from dataclasses import dataclass
import time
from typing import Optional


@dataclass(frozen=True)
class SearchBudget:
    """
    Caller-imposed cutoff for searches and scans.

    Attributes
    ----------
    max_expansions : int, optional
        Maximum settled nodes (searches), inspected edges (edge scans) or
        visited entities (dataset scans)
    timeout_s : float, optional
        Wall-clock limit in seconds
    """

    max_expansions: Optional[int] = None
    timeout_s: Optional[float] = None

    def start(self) -> "BudgetTracker":
        return BudgetTracker(self)


class BudgetTracker:
    """Running state of one budgeted operation."""

    def __init__(self, budget: SearchBudget):
        self.budget = budget
        self.steps = 0
        self._deadline = (
            time.monotonic() + budget.timeout_s if budget.timeout_s is not None else None
        )

    def step(self) -> bool:
        """Count one unit of work; True once the budget is exhausted."""
        self.steps += 1
        if self.budget.max_expansions is not None and self.steps > self.budget.max_expansions:
            return True
        if self._deadline is not None and time.monotonic() > self._deadline:
            return True
        return False


def start_budget(budget: Optional[SearchBudget]) -> Optional[BudgetTracker]:
    """Tracker for an optional budget; None means unlimited."""
    return budget.start() if budget is not None else None
