"""
Production nesting engine.

Places every unit part of a material group onto sheets with a shelf
(guillotine) heuristic: parts are sorted largest first, placed left to right
along horizontal shelves, and a new shelf or sheet is opened when the current
one is full. Each group runs through PENDING -> SORTING -> PLACING -> SEALED
and fails on its own without affecting other groups.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

from aggregation import aggregate_parts
from config import OptimizationConfig
from cut_sequence import generate_cut_sequence
from data_models import (GrainDirection, GroupFailure, MaterialKey, NestingSheet, Part, Placement,
                         ProductionResult, Shelf, SheetStock, UnitPart, WasteRegion)
from errors import (BudgetExceededError, MissingMaterialMappingError, PanelNestError,
                    UnplaceablePartError)
from estimation import validate_run_inputs
from geometry import EPSILON, fits_within, rects_overlap
from invalidation import PRODUCTION_CONFIG_FIELDS, build_input_snapshot, compute_fingerprint
from run_control import BudgetTracker, CancellationToken, RunBudget

logger = logging.getLogger(__name__)


class GroupState(Enum):
    PENDING = "pending"
    SORTING = "sorting"
    PLACING = "placing"
    SEALED = "sealed"
    FAILED = "failed"


def sort_unit_parts(unit_parts: Sequence[UnitPart]) -> List[UnitPart]:
    """Sort by area, length and width descending, then unit id ascending."""
    return sorted(unit_parts, key=lambda u: (-u.area, -u.length, -u.width, u.unit_id))


def candidate_orientations(unit: UnitPart, config: OptimizationConfig) -> List[bool]:
    """
    Permitted orientations for a unit part, as ``rotated`` flags in trial order.

    With grain matching on, a grained part is only placed as drawn. Otherwise
    the part is tried as drawn, then rotated when rotation is allowed.
    """
    if config.grain_matching and unit.grain_direction != GrainDirection.NONE:
        return [False]
    if config.allow_rotation and abs(unit.length - unit.width) > EPSILON:
        return [False, True]
    return [False]


def is_grain_aligned(unit: UnitPart, rotated: bool) -> bool:
    if unit.grain_direction == GrainDirection.NONE:
        return True
    return not rotated


def describe_orientation(unit: UnitPart, rotated: bool) -> str:
    length, width = unit.dimensions(rotated)
    return f"{length:g}x{width:g} ({'rotated' if rotated else 'as drawn'})"


def check_placeable(unit: UnitPart, stock: SheetStock, config: OptimizationConfig) -> None:
    """
    Raises:
        UnplaceablePartError: If the part fits an empty sheet in no permitted orientation
    """
    orientations = candidate_orientations(unit, config)
    for rotated in orientations:
        length, width = unit.dimensions(rotated)
        if fits_within(length, width, stock.sheet_length, stock.sheet_width):
            return
    raise UnplaceablePartError(
        unit.part_id, str(stock.material_key), stock.sheet_length, stock.sheet_width,
        [describe_orientation(unit, r) for r in orientations],
    )


class _OpenShelf:
    """A shelf still accepting parts."""

    def __init__(self, index: int, y: float, height: float):
        self.index = index
        self.y = y
        self.height = height
        self.placements: List[Placement] = []

    @property
    def next_x(self) -> float:
        return self.placements[-1].rect.right if self.placements else 0.0

    @property
    def top(self) -> float:
        return self.y + self.height


class SheetBuilder:
    """
    Mutable layout for one sheet while its group is PLACING.

    seal() returns the immutable NestingSheet; the builder is discarded after.
    """

    def __init__(self, sheet_index: int, stock: SheetStock, config: OptimizationConfig):
        self.sheet_index = sheet_index
        self.stock = stock
        self.kerf = config.kerf
        self.minimum_offcut = config.minimum_usable_offcut
        self.shelves: List[_OpenShelf] = []

    @property
    def is_empty(self) -> bool:
        return not self.shelves

    def _gap_before(self, shelf: _OpenShelf) -> float:
        return self.kerf if shelf.placements else 0.0

    def _fits_on_shelf(self, shelf: _OpenShelf, length: float, width: float) -> bool:
        x = shelf.next_x + self._gap_before(shelf)
        return fits_within(x + length, width, self.stock.sheet_length, shelf.height)

    def _next_shelf_y(self) -> float:
        if not self.shelves:
            return 0.0
        return self.shelves[-1].top + self.kerf

    def _fits_new_shelf(self, length: float, width: float) -> bool:
        y = self._next_shelf_y()
        return fits_within(length, y + width, self.stock.sheet_length, self.stock.sheet_width)

    def try_place(self, unit: UnitPart, orientations: Sequence[bool]) -> Optional[Placement]:
        """
        Place a unit part on this sheet if it fits.

        Existing shelves are tried first-fit, in every permitted orientation,
        before a new shelf is opened.

        Returns:
            The placement, or None when the sheet has no room for the part
        """
        for shelf in self.shelves:
            for rotated in orientations:
                length, width = unit.dimensions(rotated)
                if self._fits_on_shelf(shelf, length, width):
                    return self._place(shelf, unit, rotated)

        for rotated in orientations:
            length, width = unit.dimensions(rotated)
            if self._fits_new_shelf(length, width):
                shelf = _OpenShelf(len(self.shelves), self._next_shelf_y(), width)
                self.shelves.append(shelf)
                return self._place(shelf, unit, rotated)
        return None

    def _place(self, shelf: _OpenShelf, unit: UnitPart, rotated: bool) -> Placement:
        length, width = unit.dimensions(rotated)
        placement = Placement(
            part_id=unit.part_id,
            unit_id=unit.unit_id,
            part_name=unit.name,
            sheet_index=self.sheet_index,
            x=shelf.next_x + self._gap_before(shelf),
            y=shelf.y,
            length=length,
            width=width,
            rotated=rotated,
            grain_aligned=is_grain_aligned(unit, rotated),
        )
        shelf.placements.append(placement)
        if rotated:
            logger.debug(f"Placed {unit.unit_id} rotated at ({placement.x:g}, {placement.y:g}) "
                         f"as {length:g}x{width:g}")
        return placement

    def _is_reusable(self, length: float, width: float) -> bool:
        min_small, min_large = sorted(self.minimum_offcut)
        return min(length, width) >= min_small - EPSILON and max(length, width) >= min_large - EPSILON

    def _region(self, x: float, y: float, length: float, width: float) -> Optional[WasteRegion]:
        if length <= EPSILON or width <= EPSILON:
            return None
        return WasteRegion(x, y, length, width, self._is_reusable(length, width))

    def waste_regions(self) -> List[WasteRegion]:
        """Free rectangles left after cutting: shelf tails, strips above short parts, top strip."""
        sheet_length = self.stock.sheet_length
        sheet_width = self.stock.sheet_width
        regions: List[Optional[WasteRegion]] = []

        for shelf in self.shelves:
            tail_x = min(sheet_length, shelf.next_x + self.kerf)
            regions.append(self._region(tail_x, shelf.y, sheet_length - tail_x, shelf.height))
            for p in shelf.placements:
                if p.width < shelf.height - EPSILON:
                    strip_y = min(shelf.top, p.y + p.width + self.kerf)
                    regions.append(self._region(p.x, strip_y, p.length, shelf.top - strip_y))

        top_y = min(sheet_width, self.shelves[-1].top + self.kerf) if self.shelves else 0.0
        regions.append(self._region(0.0, top_y, sheet_length, sheet_width - top_y))
        return [r for r in regions if r is not None]

    def seal(self) -> NestingSheet:
        placements = tuple(p for shelf in self.shelves for p in shelf.placements)
        used = sum(p.area for p in placements)
        sheet = NestingSheet(
            sheet_index=self.sheet_index,
            material_key=self.stock.material_key,
            sheet_length=self.stock.sheet_length,
            sheet_width=self.stock.sheet_width,
            placements=placements,
            shelves=tuple(Shelf(s.index, s.y, s.height) for s in self.shelves),
            utilization_percent=min(100.0, used / self.stock.area * 100.0),
            waste_regions=tuple(self.waste_regions()),
            unit_cost=self.stock.unit_cost,
        )
        for problem in layout_violations(sheet, self.kerf):
            logger.error(f"Sheet {sheet.sheet_index} layout problem: {problem}")
        return sheet


def layout_violations(sheet: NestingSheet, kerf: float) -> List[str]:
    """
    Check a sealed sheet for out-of-bounds or overlapping placements.

    Each placement is grown by the kerf on its +x and +y sides (clipped at the
    sheet edge) before comparing, so parts closer than one blade width apart
    are reported.
    """
    problems = []
    grown = []
    for p in sheet.placements:
        if not p.rect.within(sheet.sheet_length, sheet.sheet_width):
            problems.append(f"{p.unit_id} lies outside the sheet")
        grown.append((p, p.rect.with_kerf_margin(kerf, sheet.sheet_length, sheet.sheet_width)))
    for i, (a, a_rect) in enumerate(grown):
        for b, b_rect in grown[i + 1:]:
            if rects_overlap(a_rect, b.rect) or rects_overlap(a.rect, b_rect):
                problems.append(f"{a.unit_id} overlaps {b.unit_id}")
    return problems


class MaterialGroupNester:
    """Runs one material group through sorting and placement to sealed sheets."""

    def __init__(self, material_key: MaterialKey, unit_parts: Sequence[UnitPart],
                 stock: SheetStock, config: OptimizationConfig):
        self.material_key = material_key
        self.unit_parts = list(unit_parts)
        self.stock = stock
        self.config = config
        self.state = GroupState.PENDING

    def run(self, first_sheet_index: int, cancel_token: Optional[CancellationToken] = None,
            tracker: Optional[BudgetTracker] = None) -> List[NestingSheet]:
        """
        Nest the group.

        Args:
            first_sheet_index: Index given to the group's first sheet
            cancel_token: Checked before every placement
            tracker: Budget tracker, checked and updated for every placement

        Returns:
            Sealed sheets numbered contiguously from ``first_sheet_index``

        Raises:
            UnplaceablePartError: If a part fits no empty sheet
            BudgetExceededError: If the run budget runs out mid-group
            RunCancelledError: If the token is cancelled
        """
        try:
            self.state = GroupState.SORTING
            ordered = sort_unit_parts(self.unit_parts)
            checked = set()
            for unit in ordered:
                if unit.part_id not in checked:
                    check_placeable(unit, self.stock, self.config)
                    checked.add(unit.part_id)

            self.state = GroupState.PLACING
            sheets = self._place_all(ordered, first_sheet_index, cancel_token, tracker)
        except PanelNestError:
            self.state = GroupState.FAILED
            raise

        self.state = GroupState.SEALED
        return sheets

    def _place_all(self, ordered: List[UnitPart], first_sheet_index: int,
                   cancel_token: Optional[CancellationToken],
                   tracker: Optional[BudgetTracker]) -> List[NestingSheet]:
        sealed: List[NestingSheet] = []
        current = SheetBuilder(first_sheet_index, self.stock, self.config)

        for unit in ordered:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            if tracker is not None:
                reason = tracker.exceeded_reason()
                if reason:
                    raise BudgetExceededError(str(self.material_key), reason)

            orientations = candidate_orientations(unit, self.config)
            placement = current.try_place(unit, orientations)
            if placement is None:
                sealed.append(current.seal())
                current = SheetBuilder(first_sheet_index + len(sealed), self.stock, self.config)
                placement = current.try_place(unit, orientations)
                if placement is None:
                    # check_placeable guarantees an empty sheet takes the part
                    raise UnplaceablePartError(
                        unit.part_id, str(self.material_key), self.stock.sheet_length,
                        self.stock.sheet_width, [describe_orientation(unit, r) for r in orientations],
                    )
            if tracker is not None:
                tracker.record_placement()

        if not current.is_empty:
            sealed.append(current.seal())
        logger.info(f"Sealed {len(sealed)} sheets for {self.material_key} ({len(ordered)} parts)")
        return sealed


def resolve_sheet_stock(material_key: MaterialKey,
                        palette: Mapping[MaterialKey, SheetStock]) -> SheetStock:
    """
    Raises:
        MissingMaterialMappingError: If the palette has no stock for the key
    """
    stock = palette.get(material_key)
    if stock is None:
        raise MissingMaterialMappingError(str(material_key))
    return stock


def _yield(sheets: Sequence[NestingSheet]) -> float:
    sheet_area = sum(s.sheet_area for s in sheets)
    if not sheet_area:
        return 0.0
    return sum(s.used_area for s in sheets) / sheet_area * 100.0


def run_production(parts: Sequence[Part], palette: Mapping[MaterialKey, SheetStock],
                   config: OptimizationConfig,
                   required_quantities: Optional[Mapping[str, int]] = None,
                   cancel_token: Optional[CancellationToken] = None,
                   budget: Optional[RunBudget] = None) -> ProductionResult:
    """
    Nest all parts onto sheets and derive the cut sequence.

    Material groups are processed in sorted key order; sheet indices run
    contiguously across the result. A failing group is reported in
    ``failures`` and the other groups continue.

    Args:
        parts: Parts to nest
        palette: Material key -> sheet stock
        config: Optimization settings
        required_quantities: Optional item_id -> number of items needed
        cancel_token: Cooperative cancellation flag
        budget: Optional time/placement limits

    Returns:
        ProductionResult

    Raises:
        ValidationError: For an invalid config or an empty part list
        RunCancelledError: If the run was cancelled; no partial result is returned
    """
    validate_run_inputs(parts, config)
    snapshot = build_input_snapshot(parts, palette, config, required_quantities,
                                    PRODUCTION_CONFIG_FIELDS)
    groups, failures = aggregate_parts(parts, required_quantities)
    failures = list(failures)
    tracker = BudgetTracker(budget)

    sheets: List[NestingSheet] = []
    budget_reason: Optional[str] = None

    for key, unit_parts in groups.items():
        if budget_reason is not None:
            failures.append(GroupFailure(key, BudgetExceededError(str(key), budget_reason)))
            continue
        try:
            stock = resolve_sheet_stock(key, palette)
            nester = MaterialGroupNester(key, unit_parts, stock, config)
            sheets.extend(nester.run(len(sheets), cancel_token, tracker))
        except BudgetExceededError as e:
            logger.warning(str(e))
            budget_reason = e.reason
            failures.append(GroupFailure(key, e))
        except (UnplaceablePartError, MissingMaterialMappingError) as e:
            logger.error(f"Material group {key} failed: {e}")
            failures.append(GroupFailure(key, e))

    plan = generate_cut_sequence(sheets, config)

    material_yields: Dict[str, float] = {}
    by_key: Dict[MaterialKey, List[NestingSheet]] = {}
    for sheet in sheets:
        by_key.setdefault(sheet.material_key, []).append(sheet)
    for key in sorted(by_key):
        material_yields[str(key)] = _yield(by_key[key])

    optimized_yield = _yield(sheets)
    if sheets and optimized_yield < config.target_yield_percent:
        logger.warning(f"Achieved yield {optimized_yield:.1f}% is below the "
                       f"{config.target_yield_percent:g}% target")
    logger.info(f"Production run: {len(sheets)} sheets, {optimized_yield:.1f}% yield, "
                f"{len(plan.operations)} cuts, {len(failures)} failed groups")

    failures.sort(key=lambda f: f.material_key)
    return ProductionResult(
        sheets=tuple(sheets),
        cut_sequence=tuple(plan.operations),
        optimized_yield=optimized_yield,
        material_yields=material_yields,
        total_cutting_length=plan.total_length,
        estimated_cut_time_minutes=plan.estimated_minutes,
        failures=tuple(failures),
        budget_exceeded=budget_reason is not None,
        valid_at=datetime.now(),
        fingerprint=compute_fingerprint(snapshot),
        input_snapshot=snapshot,
    )
