"""Tests for the production nesting engine."""

import pytest

from config import OptimizationConfig
from data_models import GrainDirection, MaterialKey, UnitPart
from errors import (BudgetExceededError, MissingMaterialMappingError, RunCancelledError,
                    UnplaceablePartError)
from nesting_engine import (GroupState, MaterialGroupNester, candidate_orientations,
                            layout_violations, run_production, sort_unit_parts)
from run_control import CancellationToken, RunBudget

from conftest import BACK_6, BOARD_18, make_part


def _unit(unit_id, length, width, grain=GrainDirection.NONE):
    return UnitPart(unit_id, unit_id, unit_id, length, width, BOARD_18, grain)


class TestOrdering:

    def test_sort_key(self):
        units = [_unit("b", 600, 400), _unit("a", 600, 400), _unit("c", 800, 300), _unit("d", 1000, 500)]
        assert [u.unit_id for u in sort_unit_parts(units)] == ["d", "c", "a", "b"]

    def test_same_area_prefers_longer(self):
        units = [_unit("x", 400, 600), _unit("y", 600, 400)]
        assert [u.unit_id for u in sort_unit_parts(units)] == ["y", "x"]


class TestOrientations:

    def test_grain_free_part_may_rotate(self, config):
        assert candidate_orientations(_unit("a", 600, 400), config) == [False, True]

    def test_rotation_disabled(self):
        config = OptimizationConfig(allow_rotation=False, grain_matching=False)
        assert candidate_orientations(_unit("a", 600, 400), config) == [False]

    def test_square_part_has_one_orientation(self, config):
        assert candidate_orientations(_unit("a", 500, 500), config) == [False]

    def test_length_grain_never_rotates_with_grain_matching(self, grain_config):
        assert candidate_orientations(_unit("a", 600, 400, GrainDirection.LENGTH), grain_config) == [False]

    @pytest.mark.parametrize("allow_rotation", [True, False])
    def test_width_grain_never_rotates_with_grain_matching(self, allow_rotation):
        config = OptimizationConfig(grain_matching=True, allow_rotation=allow_rotation)
        assert candidate_orientations(_unit("a", 400, 1000, GrainDirection.WIDTH), config) == [False]

    def test_grain_ignored_without_grain_matching(self, config):
        assert candidate_orientations(_unit("a", 600, 400, GrainDirection.LENGTH), config) == [False, True]


class TestScenarios:

    def test_ten_parts_fit_one_sheet(self, palette):
        config = OptimizationConfig(kerf=3.2, grain_matching=False, allow_rotation=True)
        result = run_production([make_part("P", 600, 400, quantity=10)], palette, config)

        assert result.sheet_count == 1
        assert len(result.placements) == 10
        assert result.sheets[0].utilization_percent == pytest.approx(10 * 600 * 400 / (2800 * 2070) * 100)
        assert result.optimized_yield == pytest.approx(result.sheets[0].utilization_percent)
        assert [s.y for s in result.sheets[0].shelves] == pytest.approx([0, 403.2, 806.4])
        assert layout_violations(result.sheets[0], config.kerf) == []

    def test_length_grain_part_is_never_rotated(self, palette, grain_config):
        part = make_part("G1", 2000, 100, grain=GrainDirection.LENGTH)
        result = run_production([part], palette, grain_config)
        assert len(result.placements) == 1
        assert not result.placements[0].rotated
        assert result.placements[0].grain_aligned

    def test_oversized_part_is_unplaceable(self, palette, config):
        result = run_production([make_part("BIG", 3000, 3000)], palette, config)
        assert result.sheet_count == 0
        error = result.failures[0].error
        assert isinstance(error, UnplaceablePartError)
        assert error.part_id == "BIG"
        assert error.attempted_orientations == ["3000x3000 (as drawn)"]

    def test_unplaceable_lists_both_orientations(self, palette, config):
        result = run_production([make_part("WIDE", 3000, 2100)], palette, config)
        assert result.failures[0].error.attempted_orientations == [
            "3000x2100 (as drawn)", "2100x3000 (rotated)"]


class TestPlacement:

    def test_overflow_opens_new_sheet_with_contiguous_indices(self, palette, config):
        result = run_production([make_part("P", 1500, 1000, quantity=4)], palette, config)
        assert result.sheet_count == 2
        assert [s.sheet_index for s in result.sheets] == [0, 1]
        assert all(p.sheet_index == s.sheet_index for s in result.sheets for p in s.placements)

    def test_rotation_used_to_fill_shelf(self, palette, config):
        # 2000x600 opens a 600 high shelf; 550x700 only fits under it when rotated
        parts = [make_part("A", 2000, 600), make_part("B", 550, 700)]
        result = run_production(parts, palette, config)
        placed = {p.part_id: p for p in result.placements}
        assert placed["B"].rotated
        assert placed["B"].x == pytest.approx(2004)
        assert placed["B"].y == 0

    def test_width_grain_part_is_placed_as_drawn(self, palette):
        config = OptimizationConfig(grain_matching=True, allow_rotation=False)
        result = run_production([make_part("W", 400, 1000, grain=GrainDirection.WIDTH)], palette, config)
        placement = result.placements[0]
        assert not placement.rotated
        assert (placement.length, placement.width) == (400, 1000)
        assert placement.grain_aligned

    def test_width_grain_part_that_fits_as_drawn_is_placeable(self, palette, grain_config):
        # 2100x2000 only fits the 2800x2070 sheet as drawn
        result = run_production([make_part("W", 2100, 2000, grain=GrainDirection.WIDTH)],
                                palette, grain_config)
        assert result.is_complete
        assert result.sheet_count == 1
        assert not result.placements[0].rotated

    def test_material_groups_do_not_mix(self, palette, config):
        parts = [make_part("A", 600, 400, quantity=3),
                 make_part("B", 600, 400, quantity=2, material="MDF", thickness=6.0)]
        result = run_production(parts, palette, config)
        assert result.sheet_count == 2
        for sheet in result.sheets:
            expected = "A" if sheet.material_key == BOARD_18 else "B"
            assert {p.part_id for p in sheet.placements} == {expected}
        assert set(result.material_yields) == {"HDHMR|18", "MDF|6"}

    def test_yield_is_weighted_by_sheet_area(self, palette, config):
        parts = [make_part("A", 600, 400, quantity=3),
                 make_part("B", 600, 400, quantity=2, material="MDF", thickness=6.0)]
        result = run_production(parts, palette, config)
        board_area = 2800 * 2070
        back_area = 2440 * 1220

        assert result.material_yields["HDHMR|18"] == pytest.approx(3 * 240000 / board_area * 100)
        assert result.material_yields["MDF|6"] == pytest.approx(2 * 240000 / back_area * 100)
        assert result.optimized_yield == pytest.approx(5 * 240000 / (board_area + back_area) * 100)
        plain_mean = sum(result.material_yields.values()) / 2
        assert result.optimized_yield != pytest.approx(plain_mean)

    def test_missing_material_does_not_block_other_groups(self, palette, config):
        parts = [make_part("A", 600, 400), make_part("X", 600, 400, material="OAK")]
        result = run_production(parts, palette, config)
        assert result.sheet_count == 1
        failure = result.failure_for(MaterialKey("OAK", 18.0))
        assert isinstance(failure.error, MissingMaterialMappingError)
        assert not result.is_complete

    def test_no_overlap_and_area_round_trip(self, palette, config):
        parts = [
            make_part("A", 1200, 560, quantity=5),
            make_part("B", 720, 560, quantity=7),
            make_part("C", 450, 300, quantity=11),
            make_part("D", 2100, 450, quantity=3),
            make_part("E", 350, 90, quantity=20),
        ]
        result = run_production(parts, palette, config)
        assert result.is_complete
        for sheet in result.sheets:
            assert layout_violations(sheet, config.kerf) == []
        expected_area = sum(p.length * p.width * p.quantity for p in parts)
        assert sum(p.area for p in result.placements) == pytest.approx(expected_area)
        assert len({p.unit_id for p in result.placements}) == sum(p.quantity for p in parts)

    def test_runs_are_deterministic(self, palette, config):
        parts = [make_part("A", 720, 560, quantity=9), make_part("B", 450, 300, quantity=13)]
        first = run_production(parts, palette, config)
        second = run_production(list(reversed(parts)), palette, config)
        assert first.sheets == second.sheets
        assert first.cut_sequence == second.cut_sequence
        assert first.fingerprint == second.fingerprint

    def test_waste_regions(self, palette):
        config = OptimizationConfig(kerf=4.0, grain_matching=False, allow_rotation=False)
        result = run_production([make_part("A", 1000, 500), make_part("B", 800, 300)], palette, config)
        regions = result.sheets[0].waste_regions
        assert [(r.x, r.y, r.length, r.width) for r in regions] == [
            (1808, 0, 992, 500),
            (1004, 304, 800, 196),
            (0, 504, 2800, 1566),
        ]
        assert [r.reusable for r in regions] == [True, False, True]

    def test_group_state_reaches_sealed(self, palette, config):
        units = [_unit("a", 600, 400)]
        nester = MaterialGroupNester(BOARD_18, units, palette[BOARD_18], config)
        assert nester.state == GroupState.PENDING
        sheets = nester.run(5)
        assert nester.state == GroupState.SEALED
        assert sheets[0].sheet_index == 5

    def test_group_state_failed_on_unplaceable(self, palette, config):
        nester = MaterialGroupNester(BOARD_18, [_unit("big", 3000, 3000)], palette[BOARD_18], config)
        with pytest.raises(UnplaceablePartError):
            nester.run(0)
        assert nester.state == GroupState.FAILED


class TestRunControl:

    def test_cancelled_run_raises(self, palette, config):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(RunCancelledError):
            run_production([make_part("A", 600, 400)], palette, config, cancel_token=token)

    def test_placement_budget_fails_remaining_groups(self, palette, config):
        parts = [make_part("A", 600, 400, quantity=4),
                 make_part("B", 600, 400, quantity=4, material="MDF", thickness=6.0)]
        result = run_production(parts, palette, config, budget=RunBudget(max_placements=4))
        assert result.budget_exceeded
        assert not result.is_complete
        assert [s.material_key for s in result.sheets] == [BOARD_18]
        assert isinstance(result.failure_for(BACK_6).error, BudgetExceededError)

    def test_budget_exhausted_mid_group_discards_group(self, palette, config):
        result = run_production([make_part("A", 600, 400, quantity=4)], palette, config,
                                budget=RunBudget(max_placements=2))
        assert result.budget_exceeded
        assert result.sheet_count == 0
        assert isinstance(result.failures[0].error, BudgetExceededError)
