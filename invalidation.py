"""
Input fingerprinting and staleness detection for stored optimization results.

A result records a canonical snapshot of the inputs it was computed from and
a SHA-256 fingerprint of that snapshot. Comparing against the current inputs
tells the caller whether the result is stale and why. Staleness is advisory:
the stored result is never modified.
"""

import hashlib
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from config import OptimizationConfig
from data_models import (EstimationResult, InvalidationState, MaterialKey, Part,
                         ProductionResult, SheetStock)

logger = logging.getLogger(__name__)

StoredResult = Union[EstimationResult, ProductionResult]

_PART_FIELDS = ('length', 'width', 'thickness', 'quantity', 'grain', 'material_key')

# Config fields each kind of result depends on
ESTIMATION_CONFIG_FIELDS = ('target_yield_percent', 'cost_buffer_percent')
PRODUCTION_CONFIG_FIELDS = ('kerf', 'grain_matching', 'allow_rotation', 'cut_time_per_mm',
                            'reposition_time_minutes', 'minimum_usable_offcut')


def _multiplier(part: Part, required_quantities: Optional[Mapping[str, int]]) -> int:
    if required_quantities and part.item_id in required_quantities:
        return int(required_quantities[part.item_id])
    return 1


def build_input_snapshot(parts: Sequence[Part], palette: Mapping[MaterialKey, SheetStock],
                         config: OptimizationConfig,
                         required_quantities: Optional[Mapping[str, int]] = None,
                         config_fields: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    """
    Build the plain-data snapshot a result is fingerprinted over.

    Only palette entries for material keys used by the parts are included, so
    adding stock for an unrelated material does not invalidate a result.
    ``config_fields`` limits the config to the settings the result depends on;
    all settings are included when it is None.
    """
    snapshot_parts = {}
    used_keys = set()
    for part in parts:
        key = part.material_key
        used_keys.add(key)
        snapshot_parts[part.id] = {
            'length': float(part.length),
            'width': float(part.width),
            'thickness': float(part.thickness),
            'quantity': _multiplier(part, required_quantities) * part.quantity,
            'grain': part.grain_direction.value,
            'material_key': str(key),
        }

    snapshot_palette = {}
    for key in sorted(used_keys):
        stock = palette.get(key)
        if stock is None:
            continue
        snapshot_palette[str(key)] = {
            'sheet_length': float(stock.sheet_length),
            'sheet_width': float(stock.sheet_width),
            'unit_cost': float(stock.unit_cost),
        }

    snapshot_config = config.to_dict()
    if config_fields is not None:
        snapshot_config = {name: snapshot_config[name] for name in config_fields}

    return {
        'parts': snapshot_parts,
        'palette': snapshot_palette,
        'config': snapshot_config,
    }


def compute_fingerprint(snapshot: Dict[str, Any]) -> str:
    """SHA-256 hex digest of the snapshot's canonical JSON form."""
    canonical = json.dumps(snapshot, sort_keys=True, separators=(',', ':'))
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()


def _fmt(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:g}"
    if isinstance(value, list):
        return "x".join(_fmt(v) for v in value)
    return str(value)


def diff_snapshots(old: Dict[str, Any], new: Dict[str, Any]) -> List[str]:
    """
    Describe what changed between two input snapshots.

    Returns:
        Human readable reasons, parts first, then materials, then config
    """
    reasons: List[str] = []
    old_parts = old.get('parts', {})
    new_parts = new.get('parts', {})

    for part_id in sorted(set(old_parts) | set(new_parts)):
        if part_id not in new_parts:
            reasons.append(f"part {part_id} removed")
            continue
        if part_id not in old_parts:
            reasons.append(f"part {part_id} added")
            continue
        for name in _PART_FIELDS:
            before = old_parts[part_id].get(name)
            after = new_parts[part_id].get(name)
            if before != after:
                label = name.replace('_', ' ')
                reasons.append(f"part {part_id} {label} changed {_fmt(before)}→{_fmt(after)}")

    old_palette = old.get('palette', {})
    new_palette = new.get('palette', {})
    for key in sorted(set(old_palette) | set(new_palette)):
        if key not in new_palette:
            reasons.append(f"material {key} no longer mapped")
            continue
        if key not in old_palette:
            reasons.append(f"material {key} newly mapped")
            continue
        for name in ('sheet_length', 'sheet_width', 'unit_cost'):
            before = old_palette[key].get(name)
            after = new_palette[key].get(name)
            if before != after:
                label = name.replace('_', ' ')
                reasons.append(f"material {key} {label} changed {_fmt(before)}→{_fmt(after)}")

    old_config = old.get('config', {})
    new_config = new.get('config', {})
    for name in sorted(set(old_config) | set(new_config)):
        before = old_config.get(name)
        after = new_config.get(name)
        if before != after:
            reasons.append(f"config {name} changed {_fmt(before)}→{_fmt(after)}")

    return reasons


def check_staleness(stored_result: StoredResult, parts: Sequence[Part],
                    palette: Mapping[MaterialKey, SheetStock], config: OptimizationConfig,
                    required_quantities: Optional[Mapping[str, int]] = None,
                    now: Optional[datetime] = None) -> InvalidationState:
    """
    Compare a stored result against the current inputs.

    Args:
        stored_result: Estimation or production result to check
        parts: Current part list
        palette: Current material palette
        config: Current optimization config
        required_quantities: Current item_id -> required quantity mapping
        now: Timestamp to record when stale (defaults to the current time)

    Returns:
        InvalidationState; ``invalidated_at`` is None when the result is current
    """
    if isinstance(stored_result, ProductionResult):
        config_fields = PRODUCTION_CONFIG_FIELDS
    else:
        config_fields = ESTIMATION_CONFIG_FIELDS
    snapshot = build_input_snapshot(parts, palette, config, required_quantities, config_fields)
    fingerprint = compute_fingerprint(snapshot)
    if fingerprint == stored_result.fingerprint:
        return InvalidationState()

    reasons = diff_snapshots(stored_result.input_snapshot, snapshot)
    if not reasons:
        reasons = ["inputs changed"]
    logger.info(f"Stored result is stale: {'; '.join(reasons)}")
    return InvalidationState(invalidated_at=now or datetime.now(), invalidation_reasons=tuple(reasons))
