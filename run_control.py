"""
Cooperative cancellation and run budgets for production nesting.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

from errors import RunCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """Thread-safe cancel flag checked by the engine between placements."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        logger.info("Cancellation requested")
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelledError()


@dataclass(frozen=True)
class RunBudget:
    """
    Limits for a production run. None means unlimited.

    Attributes:
        max_seconds: Wall-clock seconds allowed for the whole run
        max_placements: Total placements allowed across all groups
    """

    max_seconds: Optional[float] = None
    max_placements: Optional[int] = None


class BudgetTracker:
    """Counts placements and elapsed time against a RunBudget."""

    def __init__(self, budget: Optional[RunBudget] = None, clock=time.monotonic):
        self.budget = budget or RunBudget()
        self._clock = clock
        self._started = clock()
        self.placements = 0

    def record_placement(self) -> None:
        self.placements += 1

    def exceeded_reason(self) -> Optional[str]:
        """Describe the exhausted limit, or None while within budget."""
        if self.budget.max_placements is not None and self.placements >= self.budget.max_placements:
            return f"placement limit of {self.budget.max_placements} reached"
        if self.budget.max_seconds is not None:
            elapsed = self._clock() - self._started
            if elapsed >= self.budget.max_seconds:
                return f"time limit of {self.budget.max_seconds:g}s reached after {elapsed:.2f}s"
        return None
