"""
In-memory DimensionStore for tests
"""
from typing import Dict, List, Optional, Sequence, Set

from freight_engine.database.repositories import (
    CalibrationRepository,
    CatalogRepository,
    CategoryPatternRepository,
    DimensionStore,
    ObservationRepository,
    PackagingRepository,
    StoreError,
)
from freight_engine.domain.records import (
    CalibrationEntry,
    CategoryPattern,
    DimensionObservation,
    PackagedProduct,
    PackagingRecord,
    VariantRef,
    as_utc,
    new_id,
)


class _Failable:
    """Raise StoreError from any method named in ``fail_on``"""

    def __init__(self):
        self.fail_on: Set[str] = set()

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise StoreError(f"{type(self).__name__}.{operation} unavailable")


class InMemoryPackaging(_Failable, PackagingRepository):

    def __init__(self):
        super().__init__()
        self.records: Dict[str, PackagingRecord] = {}
        self.upserts = 0

    async def get_by_key(self, variant_id: str) -> Optional[PackagingRecord]:
        self._check("get_by_key")
        return self.records.get(variant_id)

    async def upsert(self, record: PackagingRecord) -> PackagingRecord:
        self._check("upsert")
        self.records[record.variant_id] = record
        self.upserts += 1
        return record


class InMemoryCatalog(_Failable, CatalogRepository):

    def __init__(self, packaging: InMemoryPackaging):
        super().__init__()
        self.packaging = packaging
        self.variants: Dict[str, VariantRef] = {}

    def add_variant(self, variant_sku: str, breadcrumbs: Optional[List] = None, product_id: Optional[str] = None) -> VariantRef:
        variant = VariantRef(
            id=new_id(),
            variant_sku=variant_sku,
            product_id=product_id or new_id(),
            product_title=variant_sku.title(),
            breadcrumbs=list(breadcrumbs or []),
        )
        self.variants[variant_sku] = variant
        return variant

    async def get_variant_by_sku(self, variant_sku: str) -> Optional[VariantRef]:
        self._check("get_variant_by_sku")
        return self.variants.get(variant_sku)

    async def list_products_with_packaging(self) -> List[PackagedProduct]:
        self._check("list_products_with_packaging")
        products: Dict[str, PackagedProduct] = {}
        for variant in self.variants.values():
            product = products.setdefault(
                variant.product_id,
                PackagedProduct(product_id=variant.product_id, breadcrumbs=variant.breadcrumbs, packaging=[]),
            )
            record = self.packaging.records.get(variant.id)
            if record is not None:
                product.packaging.append(record)
        return list(products.values())


class InMemoryObservations(_Failable, ObservationRepository):

    def __init__(self):
        super().__init__()
        self.rows: List[DimensionObservation] = []

    async def insert(self, observation: DimensionObservation) -> DimensionObservation:
        self._check("insert")
        stored = observation.with_id(len(self.rows) + 1)
        self.rows.append(stored)
        return stored

    def _newest_first(self, variant_id: str) -> List[DimensionObservation]:
        rows = [row for row in self.rows if row.variant_id == variant_id]
        return sorted(rows, key=lambda row: (as_utc(row.observed_at), row.id), reverse=True)

    async def recent(self, variant_id: str, limit: int) -> List[DimensionObservation]:
        self._check("recent")
        return self._newest_first(variant_id)[:limit]

    async def latest_confident(self, variant_id: str, min_confidence: float) -> Optional[DimensionObservation]:
        self._check("latest_confident")
        for row in self._newest_first(variant_id):
            if row.confidence_level >= min_confidence and row.is_complete:
                return row
        return None


class InMemoryPatterns(_Failable, CategoryPatternRepository):

    def __init__(self):
        super().__init__()
        self.patterns: Dict[str, CategoryPattern] = {}

    async def get_by_key(self, category: str) -> Optional[CategoryPattern]:
        self._check("get_by_key")
        return self.patterns.get(category)

    async def upsert_many(self, patterns: Sequence[CategoryPattern]) -> int:
        self._check("upsert_many")
        for pattern in patterns:
            self.patterns[pattern.category] = pattern
        return len(patterns)


class InMemoryCalibrations(_Failable, CalibrationRepository):

    def __init__(self):
        super().__init__()
        self.entries: Dict[str, CalibrationEntry] = {}

    async def get_by_key(self, key: str) -> Optional[CalibrationEntry]:
        self._check("get_by_key")
        return self.entries.get(key)

    async def upsert(self, entry: CalibrationEntry) -> CalibrationEntry:
        self._check("upsert")
        self.entries[entry.key] = entry
        return entry


def make_store() -> DimensionStore:
    packaging = InMemoryPackaging()
    return DimensionStore(
        catalog=InMemoryCatalog(packaging),
        observations=InMemoryObservations(),
        packaging=packaging,
        patterns=InMemoryPatterns(),
        calibrations=InMemoryCalibrations(),
    )
