"""Tests for staleness detection and project optimization state."""

from dataclasses import replace

import pytest

from config import OptimizationConfig
from data_models import MaterialKey, SheetStock
from errors import RunInProgressError, ValidationError
from estimation import run_estimation
from invalidation import build_input_snapshot, check_staleness, compute_fingerprint
from nesting_engine import run_production
from project_state import (ESTIMATION, PRODUCTION, STATUS_NONE, STATUS_STALE, STATUS_VALID,
                           ProjectOptimizationState, ProjectRunGuard, estimate_project,
                           optimize_project)

from conftest import BOARD_18, make_part


@pytest.fixture
def parts():
    return [make_part("P1", 600, 400, quantity=2), make_part("P2", 720, 560, quantity=4)]


class TestFingerprint:

    def test_fingerprint_ignores_part_order(self, parts, palette, config):
        a = compute_fingerprint(build_input_snapshot(parts, palette, config))
        b = compute_fingerprint(build_input_snapshot(list(reversed(parts)), palette, config))
        assert a == b
        assert len(a) == 64

    def test_unrelated_palette_entry_is_ignored(self, parts, palette, config):
        before = compute_fingerprint(build_input_snapshot(parts, palette, config))
        extended = dict(palette)
        extended[MaterialKey("OAK", 19.0)] = SheetStock(MaterialKey("OAK", 19.0), 2440, 1220, 9000)
        assert compute_fingerprint(build_input_snapshot(parts, extended, config)) == before


class TestStaleness:

    def test_unchanged_inputs_are_current(self, parts, palette, config):
        result = run_production(parts, palette, config)
        state = check_staleness(result, parts, palette, config)
        assert state.invalidated_at is None
        assert not state.is_stale

    def test_quantity_change_names_the_part(self, parts, palette, config):
        result = run_production(parts, palette, config)
        changed = [replace(parts[0], quantity=3), parts[1]]
        state = check_staleness(result, changed, palette, config)
        assert state.invalidated_at is not None
        assert "part P1 quantity changed 2→3" in state.invalidation_reasons
        # the stored result is untouched
        assert len(result.placements) == 6

    def test_required_quantity_change(self, palette, config):
        parts = [make_part("P1", 600, 400, quantity=2, item_id="BASE")]
        result = run_estimation(parts, palette, config, {"BASE": 1})
        state = check_staleness(result, parts, palette, config, {"BASE": 2})
        assert state.invalidation_reasons == ("part P1 quantity changed 2→4",)

    def test_added_and_removed_parts(self, parts, palette, config):
        result = run_estimation(parts, palette, config)
        state = check_staleness(result, [parts[0], make_part("P3", 300, 300)], palette, config)
        assert state.invalidation_reasons == ("part P2 removed", "part P3 added")

    def test_material_unmapped(self, parts, palette, config):
        result = run_estimation(parts, palette, config)
        reduced = {k: v for k, v in palette.items() if k != BOARD_18}
        state = check_staleness(result, parts, reduced, config)
        assert state.invalidation_reasons == ("material HDHMR|18 no longer mapped",)

    def test_config_change(self, parts, palette):
        config = OptimizationConfig(kerf=3.2)
        result = run_production(parts, palette, config)
        state = check_staleness(result, parts, palette, replace(config, kerf=4.0))
        assert state.invalidation_reasons == ("config kerf changed 3.2→4",)

    def test_estimation_ignores_saw_settings(self, parts, palette, config):
        result = run_estimation(parts, palette, config)
        changed = replace(config, kerf=5.0, cut_time_per_mm=0.01, allow_rotation=False)
        assert not check_staleness(result, parts, palette, changed).is_stale
        state = check_staleness(result, parts, palette, replace(config, target_yield_percent=70.0))
        assert state.invalidation_reasons == ("config target_yield_percent changed 85→70",)

    def test_production_ignores_cost_settings(self, parts, palette, config):
        result = run_production(parts, palette, config)
        changed = replace(config, cost_buffer_percent=30.0, target_yield_percent=70.0)
        assert not check_staleness(result, parts, palette, changed).is_stale
        state = check_staleness(result, parts, palette, replace(config, cut_time_per_mm=0.01))
        assert state.is_stale


class TestProjectState:

    def test_empty_state(self):
        state = ProjectOptimizationState("job-1")
        status = state.status()
        assert status[ESTIMATION] == STATUS_NONE
        assert status[PRODUCTION] == STATUS_NONE
        assert status["can_run_production"] is False
        assert state.needs_reoptimization(ESTIMATION)

    def test_production_requires_estimation(self, parts, palette, config):
        state = ProjectOptimizationState("job-1")
        with pytest.raises(ValidationError, match="Run estimation first"):
            optimize_project(state, ProjectRunGuard(), parts, palette, config)

    def test_estimate_then_optimize_then_go_stale(self, parts, palette, config):
        state = ProjectOptimizationState("job-1")
        guard = ProjectRunGuard()
        estimate_project(state, guard, parts, palette, config)
        assert state.can_run_production

        optimize_project(state, guard, parts, palette, config)
        assert state.status()[PRODUCTION] == STATUS_VALID
        assert not state.needs_reoptimization(PRODUCTION)

        changed = [replace(parts[0], quantity=3), parts[1]]
        state.refresh(changed, palette, config)
        status = state.status()
        assert status[ESTIMATION] == STATUS_STALE
        assert status[PRODUCTION] == STATUS_STALE
        assert not status["can_run_production"]
        assert "part P1 quantity changed 2→3" in status["production_reasons"]
        assert state.production is not None

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            ProjectOptimizationState("job-1").needs_reoptimization("draft")


class TestRunGuard:

    def test_second_run_is_rejected(self):
        guard = ProjectRunGuard()
        with guard.hold("job-1"):
            assert guard.is_running("job-1")
            with pytest.raises(RunInProgressError):
                with guard.hold("job-1"):
                    pass
            with guard.hold("job-2"):
                pass
        assert not guard.is_running("job-1")

    def test_results_are_recorded_while_guard_is_held(self, parts, palette, config, monkeypatch):
        state = ProjectOptimizationState("job-1")
        guard = ProjectRunGuard()
        held = []
        record_estimation = state.record_estimation
        record_production = state.record_production

        def recording_estimation(result):
            held.append(guard.is_running("job-1"))
            record_estimation(result)

        def recording_production(result):
            held.append(guard.is_running("job-1"))
            record_production(result)

        monkeypatch.setattr(state, "record_estimation", recording_estimation)
        monkeypatch.setattr(state, "record_production", recording_production)
        estimate_project(state, guard, parts, palette, config)
        optimize_project(state, guard, parts, palette, config)

        assert held == [True, True]
        assert state.estimation is not None
        assert state.production is not None
        assert not guard.is_running("job-1")

    def test_idle_projects_leave_no_lock_behind(self):
        guard = ProjectRunGuard()
        for project_id in ("job-1", "job-2", "job-3"):
            with guard.hold(project_id):
                pass
        assert guard._locks == {}

    def test_guard_released_after_failure(self, palette, config):
        state = ProjectOptimizationState("job-1")
        guard = ProjectRunGuard()
        with pytest.raises(ValidationError):
            estimate_project(state, guard, [], palette, config)
        assert not guard.is_running("job-1")
