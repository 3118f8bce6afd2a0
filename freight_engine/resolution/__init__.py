"""Read-time dimension resolution"""

from freight_engine.resolution.service import (
    DimensionResolution,
    ResolutionTier,
    ResolvedDimensions,
    resolve_variant_dimensions,
)

__all__ = [
    "DimensionResolution",
    "ResolutionTier",
    "ResolvedDimensions",
    "resolve_variant_dimensions",
]
