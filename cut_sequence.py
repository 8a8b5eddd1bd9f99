"""
Saw cut sequencing for sealed shelf layouts.

Each sheet is broken down the way a beam saw works a guillotine layout: rip
cuts along the sheet length separate the shelves, cross cuts separate the
parts on each shelf, and trim cuts take the offcut off parts shorter than
their shelf. Cuts that would run along a sheet edge are omitted.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from config import OptimizationConfig
from data_models import CutKind, CutOperation, NestingSheet
from geometry import EPSILON

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CutPlan:
    operations: Tuple[CutOperation, ...]
    total_length: float
    estimated_minutes: float


def _sheet_cuts(sheet: NestingSheet) -> List[Tuple[CutKind, float, float, float, float, Tuple[str, ...]]]:
    cuts = []
    for shelf in sheet.shelves:
        top = shelf.y + shelf.height
        if top < sheet.sheet_width - EPSILON:
            units = tuple(p.unit_id for p in sheet.placements_on_shelf(shelf))
            cuts.append((CutKind.RIP, 0.0, top, sheet.sheet_length, top, units))

    for shelf in sheet.shelves:
        top = shelf.y + shelf.height
        on_shelf = sheet.placements_on_shelf(shelf)
        for p in on_shelf:
            right = p.x + p.length
            if right < sheet.sheet_length - EPSILON:
                cuts.append((CutKind.CROSSCUT, right, shelf.y, right, top, (p.unit_id,)))
        for p in on_shelf:
            part_top = p.y + p.width
            if part_top < top - EPSILON:
                cuts.append((CutKind.TRIM, p.x, part_top, p.x + p.length, part_top, (p.unit_id,)))
    return cuts


def generate_cut_sequence(sheets: Sequence[NestingSheet], config: OptimizationConfig) -> CutPlan:
    """
    Build the ordered cut list for a set of sheets.

    Args:
        sheets: Sealed sheets in sheet index order
        config: Supplies cut_time_per_mm and reposition_time_minutes

    Returns:
        CutPlan with operations numbered from 1 across all sheets
    """
    operations: List[CutOperation] = []
    for sheet in sheets:
        for kind, sx, sy, ex, ey, units in _sheet_cuts(sheet):
            operations.append(CutOperation(
                sequence=len(operations) + 1,
                sheet_index=sheet.sheet_index,
                kind=kind,
                start_x=sx,
                start_y=sy,
                end_x=ex,
                end_y=ey,
                length=abs(ex - sx) + abs(ey - sy),
                resulting_parts=units,
            ))

    total_length = sum(op.length for op in operations)
    minutes = total_length * config.cut_time_per_mm + len(operations) * config.reposition_time_minutes
    logger.debug(f"Cut plan: {len(operations)} cuts, {total_length:.0f}mm, {minutes:.1f} min")
    return CutPlan(tuple(operations), total_length, minutes)
