"""
Part aggregation: validate parts, expand quantities into unit parts and group
them by material key.
"""

import logging
from collections import OrderedDict
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from data_models import GroupFailure, MaterialKey, Part, UnitPart
from errors import ValidationError

logger = logging.getLogger(__name__)


def validate_part(part: Part) -> None:
    """
    Check a part's dimensions and quantity.

    Raises:
        ValidationError: Naming the part id and the offending field
    """
    if part.length <= 0:
        raise ValidationError(f"Part '{part.id}' has non-positive length {part.length}",
                              part_id=part.id, field='length', value=part.length)
    if part.width <= 0:
        raise ValidationError(f"Part '{part.id}' has non-positive width {part.width}",
                              part_id=part.id, field='width', value=part.width)
    if part.thickness < 0:
        raise ValidationError(f"Part '{part.id}' has negative thickness {part.thickness}",
                              part_id=part.id, field='thickness', value=part.thickness)
    if part.quantity <= 0:
        raise ValidationError(f"Part '{part.id}' has non-positive quantity {part.quantity}",
                              part_id=part.id, field='quantity', value=part.quantity)


def required_multiplier(part: Part, required_quantities: Optional[Mapping[str, int]]) -> int:
    """
    Look up how many copies of the part's owning item are needed.

    Raises:
        ValidationError: If the multiplier is not positive
    """
    if not required_quantities or part.item_id not in required_quantities:
        return 1
    multiplier = required_quantities[part.item_id]
    if multiplier <= 0:
        raise ValidationError(
            f"Item '{part.item_id}' has non-positive required quantity {multiplier}",
            part_id=part.id, field='required_quantity', value=multiplier,
        )
    return int(multiplier)


def total_quantity(part: Part, required_quantities: Optional[Mapping[str, int]] = None) -> int:
    return required_multiplier(part, required_quantities) * part.quantity


def expand_part(part: Part, count: int) -> List[UnitPart]:
    """
    Expand a part into ``count`` unit parts.

    Unit ids are ``<id>-<n>`` counting from 1, or the bare part id when a
    single piece is needed.
    """
    if count == 1:
        ids = [part.id]
    else:
        ids = [f"{part.id}-{n}" for n in range(1, count + 1)]
    return [
        UnitPart(
            unit_id=unit_id,
            part_id=part.id,
            name=part.name,
            length=float(part.length),
            width=float(part.width),
            material_key=part.material_key,
            grain_direction=part.grain_direction,
        )
        for unit_id in ids
    ]


def check_unique_ids(parts: Sequence[Part]) -> None:
    """
    Raises:
        ValidationError: If two parts share an id
    """
    seen = set()
    for part in parts:
        if part.id in seen:
            raise ValidationError(f"Duplicate part id '{part.id}'", part_id=part.id, field='id',
                                  value=part.id)
        seen.add(part.id)


def aggregate_parts(parts: Sequence[Part],
                    required_quantities: Optional[Mapping[str, int]] = None
                    ) -> Tuple[Dict[MaterialKey, List[UnitPart]], List[GroupFailure]]:
    """
    Group parts by material key and expand quantities.

    A group containing any invalid part is dropped and reported as a failure;
    the remaining groups are returned in sorted material-key order.

    Args:
        parts: Parts to aggregate
        required_quantities: Optional item_id -> number of items needed

    Returns:
        Tuple of (material key -> unit parts, failures)
    """
    groups: Dict[MaterialKey, List[UnitPart]] = {}
    failed: Dict[MaterialKey, ValidationError] = {}

    for part in parts:
        key = part.material_key
        if key in failed:
            continue
        try:
            validate_part(part)
            count = total_quantity(part, required_quantities)
        except ValidationError as e:
            logger.error(f"Rejecting material group {key}: {e}")
            failed[key] = e
            groups.pop(key, None)
            continue
        groups.setdefault(key, []).extend(expand_part(part, count))

    ordered = OrderedDict((key, groups[key]) for key in sorted(groups))
    failures = [GroupFailure(key, failed[key]) for key in sorted(failed)]
    logger.info(f"Aggregated {sum(len(v) for v in ordered.values())} unit parts "
                f"into {len(ordered)} material groups ({len(failures)} rejected)")
    return ordered, failures
