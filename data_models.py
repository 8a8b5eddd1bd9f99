"""
Core data models for the PanelNest panel nesting engine.
Defines parts, sheet stock, placements, sheets, cut operations and run results.

All models are frozen: a result is produced once by a run and superseded,
never edited, by the next run.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from geometry import Rect

logger = logging.getLogger(__name__)


class GrainDirection(Enum):
    """Which edge of a part must run along the sheet grain (the sheet length)."""
    LENGTH = "length"
    WIDTH = "width"
    NONE = "none"

    @classmethod
    def parse(cls, value: Any) -> 'GrainDirection':
        """
        Parse a grain value from user data.

        Accepts the enum names/values plus the cutlist convention where
        1 / yes / true marks a grain-sensitive part (grain along its length)
        and 0 / no / false / empty marks a grain-free part.

        Raises:
            ValueError: If the value is not recognised
        """
        if isinstance(value, GrainDirection):
            return value
        if value is None:
            return cls.NONE
        if isinstance(value, bool):
            return cls.LENGTH if value else cls.NONE
        if isinstance(value, (int, float)):
            if math.isnan(value):
                return cls.NONE
            return cls.LENGTH if int(value) == 1 else cls.NONE
        text = str(value).strip().lower()
        if text in ('length', 'l', '1', 'yes', 'true', 'grain sensitive'):
            return cls.LENGTH
        if text in ('width', 'w'):
            return cls.WIDTH
        if text in ('none', 'n', '0', 'no', 'false', '', 'nan'):
            return cls.NONE
        raise ValueError(f"Unknown grain direction: {value!r}")


class CutKind(Enum):
    RIP = "rip"
    CROSSCUT = "crosscut"
    TRIM = "trim"


@dataclass(frozen=True, order=True)
class MaterialKey:
    """Material name plus thickness; parts sharing a key are nested together."""

    material: str
    thickness: float

    def __str__(self) -> str:
        return f"{self.material}|{self.thickness:g}"

    @classmethod
    def parse(cls, text: str) -> 'MaterialKey':
        """
        Parse the ``material|thickness`` string form.

        Raises:
            ValueError: If the thickness part is missing or not numeric
        """
        material, sep, thickness = str(text).rpartition('|')
        if not sep:
            raise ValueError(f"Material key must look like 'material|thickness': {text!r}")
        return cls(material.strip(), float(thickness))


@dataclass(frozen=True)
class Part:
    """
    A part to be cut, as owned by the caller.

    Attributes:
        id: Unique part identifier
        name: Display name
        length: Length in mm (the edge that follows the grain for grain-sensitive parts)
        width: Width in mm
        thickness: Thickness in mm
        quantity: Pieces needed per owning item
        material: Material name; with thickness it forms the material key
        grain_direction: Which part edge must follow the sheet grain
        priority: Optional ordering hint, carried through to reports
        item_id: Owning design item, used to look up its required quantity
        item_name: Owning design item display name
    """

    id: str
    name: str
    length: float
    width: float
    thickness: float
    quantity: int
    material: str
    grain_direction: GrainDirection = GrainDirection.NONE
    priority: Optional[int] = None
    item_id: str = ""
    item_name: str = ""

    @property
    def material_key(self) -> MaterialKey:
        return MaterialKey(self.material, float(self.thickness))

    @property
    def area(self) -> float:
        return self.length * self.width

    def __str__(self) -> str:
        return f"Part({self.id}, {self.length:g}x{self.width:g}, {self.material_key})"


@dataclass(frozen=True)
class UnitPart:
    """One physical piece after quantity expansion; each needs its own placement."""

    unit_id: str
    part_id: str
    name: str
    length: float
    width: float
    material_key: MaterialKey
    grain_direction: GrainDirection = GrainDirection.NONE

    @property
    def area(self) -> float:
        return self.length * self.width

    def dimensions(self, rotated: bool) -> Tuple[float, float]:
        """
        Get placed dimensions for an orientation.

        Args:
            rotated: Whether the part is turned 90 degrees on the sheet

        Returns:
            Tuple of (extent along sheet length, extent along sheet width)
        """
        if rotated:
            return self.width, self.length
        return self.length, self.width


@dataclass(frozen=True)
class SheetStock:
    """Physical sheet size and cost for a material key; grain runs along sheet_length."""

    material_key: MaterialKey
    sheet_length: float
    sheet_width: float
    unit_cost: float = 0.0

    @property
    def area(self) -> float:
        return self.sheet_length * self.sheet_width


def build_palette(stocks: Iterable[SheetStock]) -> Dict[MaterialKey, SheetStock]:
    """
    Index sheet stock by material key.

    Later entries for the same key replace earlier ones.
    """
    palette: Dict[MaterialKey, SheetStock] = {}
    for stock in stocks:
        if stock.material_key in palette:
            logger.warning(f"Duplicate sheet stock for {stock.material_key}; keeping the last one")
        palette[stock.material_key] = stock
    return palette


@dataclass(frozen=True)
class Placement:
    """
    A unit part placed on a sheet.

    length and width are the placed extents along the sheet length and sheet
    width, i.e. after rotation.
    """

    part_id: str
    unit_id: str
    part_name: str
    sheet_index: int
    x: float
    y: float
    length: float
    width: float
    rotated: bool
    grain_aligned: bool = True

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.length, self.width)

    @property
    def area(self) -> float:
        return self.length * self.width


@dataclass(frozen=True)
class Shelf:
    """A horizontal band of a sheet holding placements side by side."""

    index: int
    y: float
    height: float


@dataclass(frozen=True)
class WasteRegion:
    """Free rectangle left on a sealed sheet."""

    x: float
    y: float
    length: float
    width: float
    reusable: bool

    @property
    def area(self) -> float:
        return self.length * self.width


@dataclass(frozen=True)
class NestingSheet:
    """A sealed sheet layout."""

    sheet_index: int
    material_key: MaterialKey
    sheet_length: float
    sheet_width: float
    placements: Tuple[Placement, ...]
    shelves: Tuple[Shelf, ...]
    utilization_percent: float
    waste_regions: Tuple[WasteRegion, ...] = ()
    unit_cost: float = 0.0

    @property
    def sheet_area(self) -> float:
        return self.sheet_length * self.sheet_width

    @property
    def used_area(self) -> float:
        return sum(p.area for p in self.placements)

    @property
    def waste_area(self) -> float:
        return max(0.0, self.sheet_area - self.used_area)

    def placements_on_shelf(self, shelf: Shelf) -> List[Placement]:
        """Placements whose bottom edge sits on the shelf, left to right."""
        return sorted((p for p in self.placements if abs(p.y - shelf.y) < 1e-6), key=lambda p: p.x)

    def __str__(self) -> str:
        return (f"NestingSheet({self.sheet_index}, {self.material_key}, "
                f"{len(self.placements)} parts, {self.utilization_percent:.1f}%)")


@dataclass(frozen=True)
class CutOperation:
    """One straight saw cut on a sheet."""

    sequence: int
    sheet_index: int
    kind: CutKind
    start_x: float
    start_y: float
    end_x: float
    end_y: float
    length: float
    resulting_parts: Tuple[str, ...] = ()


@dataclass(frozen=True)
class GroupFailure:
    """A material group that produced no result, with the reason."""

    material_key: MaterialKey
    error: Exception = field(compare=False)

    def __str__(self) -> str:
        return f"{self.material_key}: {self.error}"


@dataclass(frozen=True)
class MaterialEstimate:
    """Closed-form estimate for one material group."""

    material_key: MaterialKey
    sheet_length: float
    sheet_width: float
    part_count: int
    total_part_area: float
    sheets_required: int
    utilization_percent: float
    waste_percent: float
    estimated_cost: float


@dataclass(frozen=True)
class EstimationResult:
    """Output of a fast estimation run."""

    materials: Tuple[MaterialEstimate, ...]
    failures: Tuple[GroupFailure, ...]
    total_parts: int
    total_area: float
    total_sheets: int
    waste_estimate: float
    standard_parts_cost: float
    special_parts_cost: float
    rough_cost: float
    total_cost: float
    valid_at: datetime
    fingerprint: str
    input_snapshot: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def sheets_by_material(self) -> Dict[str, int]:
        return {str(m.material_key): m.sheets_required for m in self.materials}

    @property
    def is_complete(self) -> bool:
        return not self.failures


@dataclass(frozen=True)
class ProductionResult:
    """Output of a production nesting run."""

    sheets: Tuple[NestingSheet, ...]
    cut_sequence: Tuple[CutOperation, ...]
    optimized_yield: float
    material_yields: Dict[str, float]
    total_cutting_length: float
    estimated_cut_time_minutes: float
    failures: Tuple[GroupFailure, ...]
    budget_exceeded: bool
    valid_at: datetime
    fingerprint: str
    input_snapshot: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def placements(self) -> List[Placement]:
        return [p for sheet in self.sheets for p in sheet.placements]

    @property
    def sheet_count(self) -> int:
        return len(self.sheets)

    @property
    def is_complete(self) -> bool:
        return not self.failures and not self.budget_exceeded

    @property
    def sheets_by_material(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for sheet in self.sheets:
            key = str(sheet.material_key)
            counts[key] = counts.get(key, 0) + 1
        return counts

    def sheets_for(self, material_key: MaterialKey) -> List[NestingSheet]:
        return [s for s in self.sheets if s.material_key == material_key]

    def failure_for(self, material_key: MaterialKey) -> Optional[GroupFailure]:
        for failure in self.failures:
            if failure.material_key == material_key:
                return failure
        return None


@dataclass(frozen=True)
class InvalidationState:
    """Staleness marker for a stored result."""

    invalidated_at: Optional[datetime] = None
    invalidation_reasons: Tuple[str, ...] = ()

    @property
    def is_stale(self) -> bool:
        return self.invalidated_at is not None
