"""
Per-project optimization status and run locking.

Keeps the latest estimation and production results of a project together
with their staleness, and makes sure only one run is in flight per project.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Sequence

from config import OptimizationConfig
from data_models import (EstimationResult, InvalidationState, MaterialKey, Part, ProductionResult,
                         SheetStock)
from errors import RunInProgressError, ValidationError
from estimation import run_estimation
from invalidation import check_staleness
from nesting_engine import run_production
from run_control import CancellationToken, RunBudget

logger = logging.getLogger(__name__)

STATUS_NONE = "none"
STATUS_VALID = "valid"
STATUS_STALE = "stale"

ESTIMATION = "estimation"
PRODUCTION = "production"


@dataclass
class ProjectOptimizationState:
    """Latest results of a project and whether they still match the inputs."""

    project_id: str
    estimation: Optional[EstimationResult] = None
    production: Optional[ProductionResult] = None
    estimation_invalidation: InvalidationState = field(default_factory=InvalidationState)
    production_invalidation: InvalidationState = field(default_factory=InvalidationState)

    def record_estimation(self, result: EstimationResult) -> None:
        self.estimation = result
        self.estimation_invalidation = InvalidationState()

    def record_production(self, result: ProductionResult) -> None:
        self.production = result
        self.production_invalidation = InvalidationState()

    def refresh(self, parts: Sequence[Part], palette: Mapping[MaterialKey, SheetStock],
                config: OptimizationConfig,
                required_quantities: Optional[Mapping[str, int]] = None) -> None:
        """Re-check stored results against the current inputs."""
        if self.estimation is not None:
            self.estimation_invalidation = check_staleness(
                self.estimation, parts, palette, config, required_quantities)
        if self.production is not None:
            self.production_invalidation = check_staleness(
                self.production, parts, palette, config, required_quantities)

    def _status_of(self, result, invalidation: InvalidationState) -> str:
        if result is None:
            return STATUS_NONE
        return STATUS_STALE if invalidation.is_stale else STATUS_VALID

    def status(self) -> Dict[str, object]:
        """
        Summarise the project's optimization status.

        Returns:
            Dictionary with ``estimation`` and ``production`` status strings
            (none / valid / stale), ``can_run_production`` and the
            invalidation reasons per mode
        """
        return {
            ESTIMATION: self._status_of(self.estimation, self.estimation_invalidation),
            PRODUCTION: self._status_of(self.production, self.production_invalidation),
            'can_run_production': self.can_run_production,
            'estimation_reasons': list(self.estimation_invalidation.invalidation_reasons),
            'production_reasons': list(self.production_invalidation.invalidation_reasons),
        }

    @property
    def can_run_production(self) -> bool:
        return self.estimation is not None and not self.estimation_invalidation.is_stale

    def needs_reoptimization(self, mode: str) -> bool:
        """True when the mode has no result or its result is stale."""
        if mode == ESTIMATION:
            return self._status_of(self.estimation, self.estimation_invalidation) != STATUS_VALID
        if mode == PRODUCTION:
            return self._status_of(self.production, self.production_invalidation) != STATUS_VALID
        raise ValueError(f"Unknown optimization mode: {mode}")


class ProjectRunGuard:
    """
    At most one optimization run in flight per project.

    A project's lock lives in the registry only while a run holds it, so idle
    projects leave nothing behind.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def is_running(self, project_id: str) -> bool:
        with self._guard:
            lock = self._locks.get(project_id)
            return lock is not None and lock.locked()

    @contextmanager
    def hold(self, project_id: str):
        """
        Hold the project's run slot for the duration of the block.

        Raises:
            RunInProgressError: If another run holds the slot
        """
        with self._guard:
            lock = self._locks.setdefault(project_id, threading.Lock())
            if not lock.acquire(blocking=False):
                raise RunInProgressError(project_id)
        try:
            yield
        finally:
            with self._guard:
                lock.release()
                del self._locks[project_id]


def estimate_project(state: ProjectOptimizationState, guard: ProjectRunGuard,
                     parts: Sequence[Part], palette: Mapping[MaterialKey, SheetStock],
                     config: OptimizationConfig,
                     required_quantities: Optional[Mapping[str, int]] = None,
                     standard_parts_cost: float = 0.0,
                     special_parts_cost: float = 0.0) -> EstimationResult:
    """Run an estimation for a project under its run guard and record the result."""
    with guard.hold(state.project_id):
        result = run_estimation(parts, palette, config, required_quantities,
                                standard_parts_cost, special_parts_cost)
        state.record_estimation(result)
    return result


def optimize_project(state: ProjectOptimizationState, guard: ProjectRunGuard,
                     parts: Sequence[Part], palette: Mapping[MaterialKey, SheetStock],
                     config: OptimizationConfig,
                     required_quantities: Optional[Mapping[str, int]] = None,
                     cancel_token: Optional[CancellationToken] = None,
                     budget: Optional[RunBudget] = None) -> ProductionResult:
    """
    Run production nesting for a project under its run guard.

    Raises:
        ValidationError: If the project has no valid estimation
        RunInProgressError: If another run for the project is in flight
    """
    state.refresh(parts, palette, config, required_quantities)
    if not state.can_run_production:
        raise ValidationError("Run estimation first before production optimization")
    with guard.hold(state.project_id):
        result = run_production(parts, palette, config, required_quantities, cancel_token, budget)
        state.record_production(result)
    logger.info(f"Project {state.project_id}: production result recorded")
    return result
