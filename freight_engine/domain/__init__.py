"""Domain records and product facts"""

from freight_engine.domain.facts import ProductFacts
from freight_engine.domain.records import (
    CalibrationEntry,
    CategoryPattern,
    DimensionObservation,
    ObservationSource,
    PackagedProduct,
    PackagingRecord,
    VariantRef,
)

__all__ = [
    "ProductFacts",
    "CalibrationEntry",
    "CategoryPattern",
    "DimensionObservation",
    "ObservationSource",
    "PackagedProduct",
    "PackagingRecord",
    "VariantRef",
]
