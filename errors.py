"""
Exception hierarchy for the PanelNest nesting engine.

Every engine error carries a message, a short machine-readable code and a
details dictionary so that callers (reports, UI, cost roll-up) can show the
failure next to the material group it belongs to.
"""

from typing import Dict, List, Optional


class PanelNestError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"[{self.code}] {self.message} | Details: {self.details}"
        return f"[{self.code}] {self.message}"


class ValidationError(PanelNestError):
    """Invalid input: bad part dimensions or quantity, or an invalid config."""

    def __init__(self, message: str, part_id: Optional[str] = None, field: Optional[str] = None,
                 value=None):
        details = {}
        if part_id is not None:
            details["part_id"] = part_id
        if field is not None:
            details["field"] = field
            details["value"] = value
        super().__init__(message, code="VALIDATION_ERROR", details=details)
        self.part_id = part_id
        self.field = field
        self.value = value


class UnplaceablePartError(PanelNestError):
    """A part does not fit an empty sheet in any permitted orientation."""

    def __init__(self, part_id: str, material_key: str, sheet_length: float, sheet_width: float,
                 attempted_orientations: List[str]):
        tried = ", ".join(attempted_orientations) if attempted_orientations else "none permitted"
        super().__init__(
            f"Part '{part_id}' cannot be placed on a {sheet_length:g}x{sheet_width:g}mm sheet of "
            f"{material_key}; tried: {tried}",
            code="UNPLACEABLE_PART",
            details={
                "part_id": part_id,
                "material_key": material_key,
                "sheet_size": (sheet_length, sheet_width),
                "attempted_orientations": list(attempted_orientations),
            },
        )
        self.part_id = part_id
        self.material_key = material_key
        self.attempted_orientations = list(attempted_orientations)


class MissingMaterialMappingError(PanelNestError):
    """The material palette has no sheet stock for a material key."""

    def __init__(self, material_key: str):
        super().__init__(
            f"No sheet stock mapped for material '{material_key}'",
            code="MISSING_MATERIAL_MAPPING",
            details={"material_key": material_key},
        )
        self.material_key = material_key


class BudgetExceededError(PanelNestError):
    """A caller-imposed time or placement budget ran out before a group was sealed."""

    def __init__(self, material_key: str, reason: str):
        super().__init__(
            f"Run budget exceeded before '{material_key}' was sealed: {reason}",
            code="BUDGET_EXCEEDED",
            details={"material_key": material_key, "reason": reason},
        )
        self.material_key = material_key
        self.reason = reason


class RunCancelledError(PanelNestError):
    """The run was cancelled by the caller; no result was produced."""

    def __init__(self, message: str = "Optimization run cancelled"):
        super().__init__(message, code="RUN_CANCELLED")


class RunInProgressError(PanelNestError):
    """Another optimization run is already in flight for the same project."""

    def __init__(self, project_id: str):
        super().__init__(
            f"An optimization run is already in progress for project '{project_id}'",
            code="RUN_IN_PROGRESS",
            details={"project_id": project_id},
        )
        self.project_id = project_id
