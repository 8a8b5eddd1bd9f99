"""
Configuration and defaults for the PanelNest engine.

The engine never stores configuration itself: every run receives an
OptimizationConfig. The module-level defaults are what the loaders and the
Streamlit app fall back to when a value is not supplied.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Tuple

from errors import ValidationError

DEFAULT_KERF = 4.0
DEFAULT_TARGET_YIELD_PERCENT = 85.0
# 2 seconds per 100 mm of cut, expressed in minutes per mm
DEFAULT_CUT_TIME_PER_MM = 2.0 / 100.0 / 60.0
DEFAULT_REPOSITION_TIME_MINUTES = 0.25
DEFAULT_MINIMUM_USABLE_OFFCUT = (200.0, 200.0)
DEFAULT_COST_BUFFER_PERCENT = 15.0

# Accepted spellings for each field in from_dict()
_FIELD_ALIASES = {
    'kerf': ('kerf', 'blade_kerf', 'bladeKerf'),
    'target_yield_percent': ('target_yield_percent', 'targetYieldPercent', 'target_yield', 'targetYield'),
    'grain_matching': ('grain_matching', 'grainMatching'),
    'allow_rotation': ('allow_rotation', 'allowRotation'),
    'cut_time_per_mm': ('cut_time_per_mm', 'cutTimePerMm'),
    'reposition_time_minutes': ('reposition_time_minutes', 'repositionTimeMinutes'),
    'minimum_usable_offcut': ('minimum_usable_offcut', 'minimumUsableCutoff', 'minimumUsableOffcut'),
    'cost_buffer_percent': ('cost_buffer_percent', 'costBufferPercent'),
}


def _parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('yes', 'true', '1', 'y', 'on')
    return bool(value)


@dataclass(frozen=True)
class OptimizationConfig:
    """
    Per-run optimization settings.

    Attributes:
        kerf: Blade width in mm consumed between adjacent placements
        target_yield_percent: Utilization assumed by the estimator (0-100], advisory for production
        grain_matching: Keep grain-sensitive parts aligned with the sheet grain
        allow_rotation: Allow 90 degree rotation of grain-free parts
        cut_time_per_mm: Saw feed time in minutes per mm of cut
        reposition_time_minutes: Fixed handling time per cut in minutes
        minimum_usable_offcut: (length, width) in mm for a waste region to count as reusable
        cost_buffer_percent: Safety margin added to the estimated sheet cost
    """

    kerf: float = DEFAULT_KERF
    target_yield_percent: float = DEFAULT_TARGET_YIELD_PERCENT
    grain_matching: bool = True
    allow_rotation: bool = True
    cut_time_per_mm: float = DEFAULT_CUT_TIME_PER_MM
    reposition_time_minutes: float = DEFAULT_REPOSITION_TIME_MINUTES
    minimum_usable_offcut: Tuple[float, float] = DEFAULT_MINIMUM_USABLE_OFFCUT
    cost_buffer_percent: float = DEFAULT_COST_BUFFER_PERCENT

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ValidationError: If any field is out of range
        """
        if self.kerf < 0:
            raise ValidationError(f"Kerf must be >= 0, got {self.kerf}", field='kerf', value=self.kerf)
        if not 0 < self.target_yield_percent <= 100:
            raise ValidationError(
                f"Target yield must be in (0, 100], got {self.target_yield_percent}",
                field='target_yield_percent', value=self.target_yield_percent,
            )
        if self.cut_time_per_mm < 0:
            raise ValidationError("Cut time per mm must be >= 0",
                                  field='cut_time_per_mm', value=self.cut_time_per_mm)
        if self.reposition_time_minutes < 0:
            raise ValidationError("Reposition time must be >= 0",
                                  field='reposition_time_minutes', value=self.reposition_time_minutes)
        if len(self.minimum_usable_offcut) != 2 or min(self.minimum_usable_offcut) < 0:
            raise ValidationError("Minimum usable offcut must be two non-negative sizes",
                                  field='minimum_usable_offcut', value=self.minimum_usable_offcut)
        if self.cost_buffer_percent < 0:
            raise ValidationError("Cost buffer must be >= 0",
                                  field='cost_buffer_percent', value=self.cost_buffer_percent)

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data form used for fingerprinting and reports."""
        data = asdict(self)
        data['minimum_usable_offcut'] = [float(v) for v in self.minimum_usable_offcut]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OptimizationConfig':
        """
        Build a config from a dictionary with snake_case or camelCase keys.

        Missing keys fall back to the module defaults.

        Raises:
            ValidationError: If the resulting config is out of range or a value cannot be parsed
        """
        values: Dict[str, Any] = {}
        for field_name, aliases in _FIELD_ALIASES.items():
            for alias in aliases:
                if alias in data and data[alias] is not None:
                    values[field_name] = data[alias]
                    break

        try:
            for name in ('kerf', 'target_yield_percent', 'cut_time_per_mm',
                         'reposition_time_minutes', 'cost_buffer_percent'):
                if name in values:
                    values[name] = float(values[name])
            for name in ('grain_matching', 'allow_rotation'):
                if name in values:
                    values[name] = _parse_bool(values[name])
            if 'minimum_usable_offcut' in values:
                offcut = values['minimum_usable_offcut']
                if isinstance(offcut, dict):
                    offcut = (offcut.get('length', 0.0), offcut.get('width', 0.0))
                values['minimum_usable_offcut'] = tuple(float(v) for v in offcut)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid optimization config value: {e}")

        config = cls(**values)
        config.validate()
        return config
