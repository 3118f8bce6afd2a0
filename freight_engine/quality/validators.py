"""
Dimension Validation Module

Rule-based plausibility checks for package measurements. The same rule set
guards the ingestion entry point and the final reconciled record, so a bad
measurement can never reach the authoritative packaging table.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional

import structlog

from freight_engine.config import get_settings
from freight_engine.config.settings import ReconciliationSettings
from freight_engine.domain.records import DimensionObservation, ObservationSource, PackagingRecord

logger = structlog.get_logger(__name__)

DIMENSION_FIELDS = ("length_in", "width_in", "height_in")


class DimensionValidationError(ValueError):
    """Raised when a measurement violates one or more plausibility rules"""

    def __init__(self, errors: List[str], fields: Optional[List[str]] = None):
        self.errors = list(errors)
        self.fields = list(fields or [])
        super().__init__("Invalid dimensions: " + "; ".join(self.errors))


@dataclass
class ValidationCheck:
    """Single rule outcome"""
    name: str
    field: str
    passed: bool
    message: str = ""


@dataclass
class ValidationResult:
    """All rule outcomes for one measurement"""
    checks: List[ValidationCheck] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return all(check.passed for check in self.checks)

    @property
    def errors(self) -> List[str]:
        return [check.message for check in self.checks if not check.passed]

    @property
    def fields(self) -> List[str]:
        seen: List[str] = []
        for check in self.checks:
            if not check.passed and check.field not in seen:
                seen.append(check.field)
        return seen

    def raise_for_errors(self) -> None:
        if not self.is_valid:
            raise DimensionValidationError(self.errors, self.fields)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_dimensions(
    length_in: Optional[float],
    width_in: Optional[float],
    height_in: Optional[float],
    weight_lb: Optional[float] = None,
    boxes_per_unit: Optional[int] = 1,
    confidence_level: Optional[float] = None,
    require_complete: bool = False,
    config: Optional[ReconciliationSettings] = None,
) -> ValidationResult:
    """
    Check a set of measurements against the plausibility rules.

    Args:
        require_complete: Treat a missing length/width/height as a violation

    Returns:
        ValidationResult listing every check, passed or not
    """
    config = config or get_settings().reconciliation
    result = ValidationResult()
    values = dict(zip(DIMENSION_FIELDS, (length_in, width_in, height_in)))

    for name, value in values.items():
        if value is None:
            result.checks.append(ValidationCheck(
                name="present",
                field=name,
                passed=not require_complete,
                message=f"{name} is required",
            ))
            continue
        if not _is_number(value) or value <= 0:
            result.checks.append(ValidationCheck("positive", name, False, f"{name} must be greater than 0"))
        elif value > config.max_dimension_in:
            result.checks.append(ValidationCheck(
                "plausible", name, False,
                f"{name} must be at most {config.max_dimension_in:g} in",
            ))
        else:
            result.checks.append(ValidationCheck("range", name, True))

    if weight_lb is not None:
        if not _is_number(weight_lb) or weight_lb <= 0:
            result.checks.append(ValidationCheck("positive", "weight_lb", False, "weight_lb must be greater than 0"))
        elif weight_lb > config.max_weight_lb:
            result.checks.append(ValidationCheck(
                "plausible", "weight_lb", False,
                f"weight_lb must be at most {config.max_weight_lb:g} lb",
            ))
        else:
            result.checks.append(ValidationCheck("range", "weight_lb", True))

    if boxes_per_unit is not None:
        ok = isinstance(boxes_per_unit, int) and not isinstance(boxes_per_unit, bool) and boxes_per_unit >= 1
        result.checks.append(ValidationCheck("min", "boxes_per_unit", ok, "boxes_per_unit must be at least 1"))

    if confidence_level is not None:
        ok = _is_number(confidence_level) and 0.0 <= confidence_level <= 1.0
        result.checks.append(ValidationCheck(
            "range", "confidence_level", ok, "confidence_level must be between 0 and 1",
        ))

    return result


def validate_observation(
    observation: DimensionObservation,
    config: Optional[ReconciliationSettings] = None,
) -> DimensionObservation:
    """Validate an incoming observation, raising on any violation."""
    result = validate_dimensions(
        observation.length_in,
        observation.width_in,
        observation.height_in,
        weight_lb=observation.weight_lb,
        boxes_per_unit=observation.boxes_per_unit,
        confidence_level=observation.confidence_level,
        config=config,
    )
    if not isinstance(observation.source, ObservationSource):
        result.checks.append(ValidationCheck("enum", "source", False, f"unknown source {observation.source!r}"))
    if not result.is_valid:
        logger.warning(
            "Observation rejected",
            variant_id=observation.variant_id,
            errors=result.errors,
        )
    result.raise_for_errors()
    return observation


def validate_packaging(
    record: PackagingRecord,
    config: Optional[ReconciliationSettings] = None,
) -> ValidationResult:
    """Validate a reconciled packaging record; incomplete dims are violations."""
    return validate_dimensions(
        record.box_length_in,
        record.box_width_in,
        record.box_height_in,
        weight_lb=record.box_weight_lb,
        boxes_per_unit=record.boxes_per_unit,
        require_complete=True,
        config=config,
    )
