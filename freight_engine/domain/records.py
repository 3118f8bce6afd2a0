"""
Domain Records

Plain records the engine computes over. Repositories map these to and from
the relational store; the engine never sees ORM rows.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional
import uuid


class ObservationSource(str, Enum):
    """Where a dimension observation came from"""
    MANUAL = "manual"
    OVERRIDE = "override"
    AMAZON = "amazon"
    ZYTE = "zyte"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: Any) -> "ObservationSource":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "other").strip().lower())
        except ValueError:
            return cls.OTHER


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps (e.g. from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class DimensionObservation:
    """One reported measurement of a variant's shipping package"""
    variant_id: str
    source: ObservationSource
    length_in: Optional[float]
    width_in: Optional[float]
    height_in: Optional[float]
    weight_lb: Optional[float] = None
    boxes_per_unit: int = 1
    confidence_level: float = 0.80
    observed_at: datetime = field(default_factory=utcnow)
    id: Optional[int] = None

    @property
    def is_complete(self) -> bool:
        return all(
            value is not None and value > 0
            for value in (self.length_in, self.width_in, self.height_in)
        )

    @property
    def volume_in3(self) -> float:
        if not self.is_complete:
            return 0.0
        return self.length_in * self.width_in * self.height_in

    def with_id(self, observation_id: int) -> "DimensionObservation":
        return replace(self, id=observation_id)


@dataclass(frozen=True)
class PackagingRecord:
    """The authoritative, reconciled carton dimensions of a variant"""
    variant_id: str
    box_length_in: float
    box_width_in: float
    box_height_in: float
    box_weight_lb: float
    boxes_per_unit: int
    reconciled_source: ObservationSource
    reconciled_conf_level: float
    updated_at: Optional[datetime] = None

    @property
    def is_complete(self) -> bool:
        return all(
            value is not None and value > 0
            for value in (self.box_length_in, self.box_width_in, self.box_height_in)
        )


@dataclass(frozen=True)
class CategoryPattern:
    """Learned carton statistics for a leaf category"""
    category: str
    avg_length: float
    avg_width: float
    avg_height: float
    avg_weight: Optional[float]
    min_length: float
    min_width: float
    min_height: float
    min_weight: float
    max_length: float
    max_width: float
    max_height: float
    max_weight: float
    sample_count: int


@dataclass(frozen=True)
class VariantRef:
    """A variant with the product context the resolvers need"""
    id: str
    variant_sku: str
    product_id: Optional[str] = None
    product_title: Optional[str] = None
    breadcrumbs: List[Any] = field(default_factory=list)


@dataclass(frozen=True)
class PackagedProduct:
    """A product with the packaging records of its variants (learner input)"""
    product_id: str
    breadcrumbs: List[Any]
    packaging: List[PackagingRecord]


@dataclass(frozen=True)
class CalibrationEntry:
    """Smoothed estimated-vs-actual carton volume multiplier"""
    key: str
    multiplier: float
    samples: int = 1
    updated_at: Optional[datetime] = None


def new_id() -> str:
    return str(uuid.uuid4())
