"""
Fast estimation: sheet counts, waste and cost from part areas alone.

No placement is performed, so the run is linear in the number of parts and
suitable for quoting before a production nesting run.
"""

import logging
import math
from datetime import datetime
from typing import List, Mapping, Optional, Sequence

from aggregation import aggregate_parts, check_unique_ids
from config import OptimizationConfig
from data_models import (EstimationResult, GroupFailure, MaterialEstimate, MaterialKey, Part,
                         SheetStock, UnitPart)
from errors import MissingMaterialMappingError, ValidationError
from invalidation import ESTIMATION_CONFIG_FIELDS, build_input_snapshot, compute_fingerprint

logger = logging.getLogger(__name__)


def validate_run_inputs(parts: Sequence[Part], config: OptimizationConfig) -> None:
    """
    Whole-run checks shared by estimation and production.

    Raises:
        ValidationError: For an invalid config, an empty part list or duplicate part ids
    """
    config.validate()
    if not parts:
        raise ValidationError("No parts to optimize")
    check_unique_ids(parts)


def sheets_required(total_part_area: float, sheet_area: float, target_yield_percent: float) -> int:
    """
    Closed-form sheet count for a material group.

    Returns 0 for an empty group and at least 1 otherwise.
    """
    if total_part_area <= 0:
        return 0
    usable_area = sheet_area * target_yield_percent / 100.0
    return max(1, math.ceil(total_part_area / usable_area))


def estimate_group(material_key: MaterialKey, unit_parts: List[UnitPart], stock: SheetStock,
                   config: OptimizationConfig) -> MaterialEstimate:
    total_area = sum(u.area for u in unit_parts)
    sheets = sheets_required(total_area, stock.area, config.target_yield_percent)
    if sheets:
        utilization = total_area / (sheets * stock.area) * 100.0
    else:
        utilization = 0.0
    return MaterialEstimate(
        material_key=material_key,
        sheet_length=stock.sheet_length,
        sheet_width=stock.sheet_width,
        part_count=len(unit_parts),
        total_part_area=total_area,
        sheets_required=sheets,
        utilization_percent=utilization,
        waste_percent=100.0 - utilization if sheets else 0.0,
        estimated_cost=sheets * stock.unit_cost,
    )


def run_estimation(parts: Sequence[Part], palette: Mapping[MaterialKey, SheetStock],
                   config: OptimizationConfig,
                   required_quantities: Optional[Mapping[str, int]] = None,
                   standard_parts_cost: float = 0.0,
                   special_parts_cost: float = 0.0) -> EstimationResult:
    """
    Estimate sheets and cost per material group.

    Args:
        parts: Parts to estimate
        palette: Material key -> sheet stock
        config: Optimization settings (target yield, cost buffer)
        required_quantities: Optional item_id -> number of items needed
        standard_parts_cost: Cost of bought-in standard parts added to the total
        special_parts_cost: Cost of special parts added to the total

    Returns:
        EstimationResult; groups that could not be estimated are listed in ``failures``

    Raises:
        ValidationError: For an invalid config or an empty part list
    """
    validate_run_inputs(parts, config)
    snapshot = build_input_snapshot(parts, palette, config, required_quantities,
                                    ESTIMATION_CONFIG_FIELDS)

    groups, failures = aggregate_parts(parts, required_quantities)
    failures = list(failures)
    estimates: List[MaterialEstimate] = []

    for key, unit_parts in groups.items():
        stock = palette.get(key)
        if stock is None:
            error = MissingMaterialMappingError(str(key))
            logger.error(str(error))
            failures.append(GroupFailure(key, error))
            continue
        estimate = estimate_group(key, unit_parts, stock, config)
        logger.info(f"Estimated {key}: {estimate.part_count} parts, "
                    f"{estimate.sheets_required} sheets, {estimate.waste_percent:.1f}% waste")
        estimates.append(estimate)

    total_area = sum(e.total_part_area for e in estimates)
    total_sheet_area = sum(e.sheets_required * e.sheet_length * e.sheet_width for e in estimates)
    waste = 100.0 - total_area / total_sheet_area * 100.0 if total_sheet_area else 0.0

    sheet_cost = sum(e.estimated_cost for e in estimates)
    rough_cost = sheet_cost * (1.0 + config.cost_buffer_percent / 100.0)
    total_cost = rough_cost + standard_parts_cost + special_parts_cost

    failures.sort(key=lambda f: f.material_key)
    return EstimationResult(
        materials=tuple(estimates),
        failures=tuple(failures),
        total_parts=sum(e.part_count for e in estimates),
        total_area=total_area,
        total_sheets=sum(e.sheets_required for e in estimates),
        waste_estimate=waste,
        standard_parts_cost=float(standard_parts_cost),
        special_parts_cost=float(special_parts_cost),
        rough_cost=rough_cost,
        total_cost=total_cost,
        valid_at=datetime.now(),
        fingerprint=compute_fingerprint(snapshot),
        input_snapshot=snapshot,
    )
