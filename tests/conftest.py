"""Shared fixtures for PanelNest tests."""

import pytest

from config import OptimizationConfig
from data_models import GrainDirection, MaterialKey, Part, SheetStock, build_palette

BOARD_18 = MaterialKey("HDHMR", 18.0)
BACK_6 = MaterialKey("MDF", 6.0)


def make_part(part_id, length, width, quantity=1, material="HDHMR", thickness=18.0,
              grain=GrainDirection.NONE, item_id=""):
    return Part(
        id=part_id,
        name=f"Panel {part_id}",
        length=length,
        width=width,
        thickness=thickness,
        quantity=quantity,
        material=material,
        grain_direction=grain,
        item_id=item_id,
    )


@pytest.fixture
def palette():
    """2800x2070 board stock and 2440x1220 back panel stock."""
    return build_palette([
        SheetStock(BOARD_18, 2800.0, 2070.0, 5200.0),
        SheetStock(BACK_6, 2440.0, 1220.0, 1100.0),
    ])


@pytest.fixture
def config():
    return OptimizationConfig(kerf=4.0, grain_matching=False, allow_rotation=True)


@pytest.fixture
def grain_config():
    return OptimizationConfig(kerf=4.0, grain_matching=True, allow_rotation=True)
