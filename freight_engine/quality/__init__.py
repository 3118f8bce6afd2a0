"""Measurement validation"""

from freight_engine.quality.validators import (
    DimensionValidationError,
    ValidationCheck,
    ValidationResult,
    validate_dimensions,
    validate_observation,
    validate_packaging,
)

__all__ = [
    "DimensionValidationError",
    "ValidationCheck",
    "ValidationResult",
    "validate_dimensions",
    "validate_observation",
    "validate_packaging",
]
