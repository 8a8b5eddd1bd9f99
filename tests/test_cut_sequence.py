"""Tests for saw cut sequencing."""

import pytest

from config import OptimizationConfig
from cut_sequence import generate_cut_sequence
from data_models import CutKind, SheetStock, build_palette
from nesting_engine import run_production

from conftest import BOARD_18, make_part


def test_rips_come_before_cross_cuts(palette):
    config = OptimizationConfig(kerf=3.2, grain_matching=False, cut_time_per_mm=0.001,
                                reposition_time_minutes=0.5)
    result = run_production([make_part("P", 600, 400, quantity=10)], palette, config)
    kinds = [op.kind for op in result.cut_sequence]

    assert kinds == [CutKind.RIP] * 3 + [CutKind.CROSSCUT] * 10
    assert [op.start_y for op in result.cut_sequence[:3]] == pytest.approx([400, 803.2, 1206.4])
    assert all(op.length == pytest.approx(2800) for op in result.cut_sequence[:3])
    assert all(op.length == pytest.approx(400) for op in result.cut_sequence[3:])
    assert [op.sequence for op in result.cut_sequence] == list(range(1, 14))

    assert result.total_cutting_length == pytest.approx(3 * 2800 + 10 * 400)
    assert result.estimated_cut_time_minutes == pytest.approx(12400 * 0.001 + 13 * 0.5)


def test_trim_cut_for_short_part():
    palette = build_palette([SheetStock(BOARD_18, 2800, 2070, 0)])
    config = OptimizationConfig(kerf=4.0, grain_matching=False, allow_rotation=False)
    result = run_production([make_part("A", 1000, 500), make_part("B", 800, 300)], palette, config)

    ops = result.cut_sequence
    assert [op.kind for op in ops] == [CutKind.RIP, CutKind.CROSSCUT, CutKind.CROSSCUT, CutKind.TRIM]
    trim = ops[-1]
    assert (trim.start_x, trim.start_y, trim.end_x, trim.end_y) == (1004, 300, 1804, 300)
    assert trim.resulting_parts == ("B",)


def test_edge_cuts_are_omitted(palette):
    config = OptimizationConfig(kerf=4.0, grain_matching=False, allow_rotation=False)
    result = run_production([make_part("FULL", 2800, 2070)], palette, config)
    assert result.sheet_count == 1
    assert result.cut_sequence == ()
    assert result.estimated_cut_time_minutes == 0


def test_empty_sheet_list():
    plan = generate_cut_sequence([], OptimizationConfig())
    assert plan.operations == ()
    assert plan.total_length == 0
