"""
Repositories

The engine reads and writes persisted state only through these interfaces.
Each interface exposes key lookups and upsert-by-unique-key; the SQLAlchemy
implementations below translate rows to domain records and wrap every
driver failure in :class:`StoreError`.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
import functools
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import structlog
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from freight_engine.database.models import (
    CartonCalibrationRow,
    CategoryPatternRow,
    DimensionObservationRow,
    PackagingRow,
    Product,
    Variant,
)
from freight_engine.domain.records import (
    CalibrationEntry,
    CategoryPattern,
    DimensionObservation,
    ObservationSource,
    PackagedProduct,
    PackagingRecord,
    VariantRef,
    as_utc,
)

logger = structlog.get_logger(__name__)


class StoreError(RuntimeError):
    """Transient failure of the relational store"""


class VariantNotFoundError(LookupError):
    """No variant exists for the given SKU or id"""

    def __init__(self, variant_sku: str):
        self.variant_sku = variant_sku
        super().__init__(f"Variant not found: {variant_sku}")


# =============================================================================
# INTERFACES
# =============================================================================

class CatalogRepository(ABC):

    @abstractmethod
    async def get_variant_by_sku(self, variant_sku: str) -> Optional[VariantRef]:
        ...

    @abstractmethod
    async def list_products_with_packaging(self) -> List[PackagedProduct]:
        ...


class ObservationRepository(ABC):

    @abstractmethod
    async def insert(self, observation: DimensionObservation) -> DimensionObservation:
        """Append an observation; returns it with its assigned id."""

    @abstractmethod
    async def recent(self, variant_id: str, limit: int) -> List[DimensionObservation]:
        """Most recent observations first."""

    @abstractmethod
    async def latest_confident(self, variant_id: str, min_confidence: float) -> Optional[DimensionObservation]:
        """Most recent complete observation at or above ``min_confidence``."""


class PackagingRepository(ABC):

    @abstractmethod
    async def get_by_key(self, variant_id: str) -> Optional[PackagingRecord]:
        ...

    @abstractmethod
    async def upsert(self, record: PackagingRecord) -> PackagingRecord:
        ...


class CategoryPatternRepository(ABC):

    @abstractmethod
    async def get_by_key(self, category: str) -> Optional[CategoryPattern]:
        ...

    @abstractmethod
    async def upsert_many(self, patterns: Sequence[CategoryPattern]) -> int:
        """Write all patterns as one batch; returns the number written."""


class CalibrationRepository(ABC):

    @abstractmethod
    async def get_by_key(self, key: str) -> Optional[CalibrationEntry]:
        ...

    @abstractmethod
    async def upsert(self, entry: CalibrationEntry) -> CalibrationEntry:
        ...


@dataclass
class DimensionStore:
    """Bundle of the repositories one unit of work needs"""
    catalog: CatalogRepository
    observations: ObservationRepository
    packaging: PackagingRepository
    patterns: CategoryPatternRepository
    calibrations: CalibrationRepository

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        """
        Scope whose writes are undone alone when it raises.

        Stores without transactions have nothing to scope.
        """
        yield


# =============================================================================
# SQLALCHEMY IMPLEMENTATIONS
# =============================================================================

def _store_errors(method):
    """Re-raise driver failures as StoreError."""

    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except SQLAlchemyError as e:
            logger.error(
                "Store operation failed",
                operation=f"{type(self).__name__}.{method.__name__}",
                error=str(e),
            )
            raise StoreError(str(e)) from e

    return wrapper


class _SqlRepository:

    def __init__(self, session: AsyncSession):
        self._session = session

    def _insert(self, model):
        """Dialect-specific INSERT supporting ON CONFLICT."""
        dialect = self._session.bind.dialect.name if self._session.bind is not None else "postgresql"
        if dialect == "sqlite":
            return sqlite_insert(model)
        return pg_insert(model)


def _observation_from_row(row: DimensionObservationRow) -> DimensionObservation:
    return DimensionObservation(
        id=row.id,
        variant_id=row.variant_id,
        source=ObservationSource.coerce(row.source),
        length_in=row.length_in,
        width_in=row.width_in,
        height_in=row.height_in,
        weight_lb=row.weight_lb,
        boxes_per_unit=row.boxes_per_unit or 1,
        confidence_level=row.confidence_level,
        observed_at=as_utc(row.observed_at),
    )


def _packaging_from_row(row: PackagingRow) -> PackagingRecord:
    return PackagingRecord(
        variant_id=row.variant_id,
        box_length_in=row.box_length_in,
        box_width_in=row.box_width_in,
        box_height_in=row.box_height_in,
        box_weight_lb=row.box_weight_lb,
        boxes_per_unit=row.boxes_per_unit or 1,
        reconciled_source=ObservationSource.coerce(row.reconciled_source),
        reconciled_conf_level=row.reconciled_conf_level,
        updated_at=as_utc(row.updated_at) if row.updated_at else None,
    )


PATTERN_COLUMNS = (
    "category",
    "avg_length", "avg_width", "avg_height", "avg_weight",
    "min_length", "min_width", "min_height", "min_weight",
    "max_length", "max_width", "max_height", "max_weight",
    "sample_count",
)


def _pattern_values(pattern: CategoryPattern) -> Dict[str, Any]:
    return {name: getattr(pattern, name) for name in PATTERN_COLUMNS}


class SqlCatalogRepository(_SqlRepository, CatalogRepository):

    @_store_errors
    async def get_variant_by_sku(self, variant_sku: str) -> Optional[VariantRef]:
        query = (
            select(Variant)
            .options(selectinload(Variant.product))
            .where(Variant.variant_sku == variant_sku)
        )
        variant = (await self._session.execute(query)).scalar_one_or_none()
        if variant is None:
            return None
        return VariantRef(
            id=variant.id,
            variant_sku=variant.variant_sku,
            product_id=variant.product_id,
            product_title=variant.product.title if variant.product else None,
            breadcrumbs=list(variant.product.breadcrumbs or []) if variant.product else [],
        )

    @_store_errors
    async def list_products_with_packaging(self) -> List[PackagedProduct]:
        query = (
            select(Product)
            .options(selectinload(Product.variants).selectinload(Variant.packaging))
            .execution_options(populate_existing=True)
        )
        products = (await self._session.execute(query)).scalars().all()
        return [
            PackagedProduct(
                product_id=product.id,
                breadcrumbs=list(product.breadcrumbs or []),
                packaging=[
                    _packaging_from_row(variant.packaging)
                    for variant in product.variants
                    if variant.packaging is not None
                ],
            )
            for product in products
        ]


class SqlObservationRepository(_SqlRepository, ObservationRepository):

    @_store_errors
    async def insert(self, observation: DimensionObservation) -> DimensionObservation:
        row = DimensionObservationRow(
            variant_id=observation.variant_id,
            source=observation.source.value,
            length_in=observation.length_in,
            width_in=observation.width_in,
            height_in=observation.height_in,
            weight_lb=observation.weight_lb,
            boxes_per_unit=observation.boxes_per_unit,
            confidence_level=observation.confidence_level,
            observed_at=observation.observed_at,
        )
        self._session.add(row)
        await self._session.flush()
        return observation.with_id(row.id)

    @_store_errors
    async def recent(self, variant_id: str, limit: int) -> List[DimensionObservation]:
        query = (
            select(DimensionObservationRow)
            .where(DimensionObservationRow.variant_id == variant_id)
            .order_by(DimensionObservationRow.observed_at.desc(), DimensionObservationRow.id.desc())
            .limit(limit)
        )
        rows = (await self._session.execute(query)).scalars().all()
        return [_observation_from_row(row) for row in rows]

    @_store_errors
    async def latest_confident(self, variant_id: str, min_confidence: float) -> Optional[DimensionObservation]:
        query = (
            select(DimensionObservationRow)
            .where(
                DimensionObservationRow.variant_id == variant_id,
                DimensionObservationRow.confidence_level >= min_confidence,
                DimensionObservationRow.length_in > 0,
                DimensionObservationRow.width_in > 0,
                DimensionObservationRow.height_in > 0,
            )
            .order_by(DimensionObservationRow.observed_at.desc(), DimensionObservationRow.id.desc())
            .limit(1)
        )
        row = (await self._session.execute(query)).scalar_one_or_none()
        return _observation_from_row(row) if row else None


class SqlPackagingRepository(_SqlRepository, PackagingRepository):

    @_store_errors
    async def get_by_key(self, variant_id: str) -> Optional[PackagingRecord]:
        query = (
            select(PackagingRow)
            .where(PackagingRow.variant_id == variant_id)
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(query)).scalar_one_or_none()
        return _packaging_from_row(row) if row else None

    @_store_errors
    async def upsert(self, record: PackagingRecord) -> PackagingRecord:
        values = {
            "variant_id": record.variant_id,
            "box_length_in": record.box_length_in,
            "box_width_in": record.box_width_in,
            "box_height_in": record.box_height_in,
            "box_weight_lb": record.box_weight_lb,
            "boxes_per_unit": record.boxes_per_unit,
            "reconciled_source": record.reconciled_source.value,
            "reconciled_conf_level": record.reconciled_conf_level,
        }
        stmt = self._insert(PackagingRow).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["variant_id"],
            set_={**{k: v for k, v in values.items() if k != "variant_id"}, "updated_at": func.now()},
        )
        await self._session.execute(stmt)
        await self._session.flush()
        return record


class SqlCategoryPatternRepository(_SqlRepository, CategoryPatternRepository):

    @_store_errors
    async def get_by_key(self, category: str) -> Optional[CategoryPattern]:
        query = (
            select(CategoryPatternRow)
            .where(CategoryPatternRow.category == category)
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(query)).scalar_one_or_none()
        if row is None:
            return None
        return CategoryPattern(**{name: getattr(row, name) for name in PATTERN_COLUMNS})

    @_store_errors
    async def upsert_many(self, patterns: Sequence[CategoryPattern]) -> int:
        if not patterns:
            return 0
        stmt = self._insert(CategoryPatternRow).values([_pattern_values(p) for p in patterns])
        stmt = stmt.on_conflict_do_update(
            index_elements=["category"],
            set_={
                **{name: stmt.excluded[name] for name in PATTERN_COLUMNS if name != "category"},
                "updated_at": func.now(),
            },
        )
        await self._session.execute(stmt)
        await self._session.flush()
        return len(patterns)


class SqlCalibrationRepository(_SqlRepository, CalibrationRepository):

    @_store_errors
    async def get_by_key(self, key: str) -> Optional[CalibrationEntry]:
        query = (
            select(CartonCalibrationRow)
            .where(CartonCalibrationRow.key == key)
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(query)).scalar_one_or_none()
        if row is None:
            return None
        return CalibrationEntry(
            key=row.key,
            multiplier=row.multiplier,
            samples=row.samples,
            updated_at=as_utc(row.updated_at) if row.updated_at else None,
        )

    @_store_errors
    async def upsert(self, entry: CalibrationEntry) -> CalibrationEntry:
        stmt = self._insert(CartonCalibrationRow).values(
            key=entry.key, multiplier=entry.multiplier, samples=entry.samples,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={"multiplier": entry.multiplier, "samples": entry.samples, "updated_at": func.now()},
        )
        await self._session.execute(stmt)
        await self._session.flush()
        return entry


@dataclass
class SqlDimensionStore(DimensionStore):
    """DimensionStore whose repositories share one AsyncSession"""
    session: Optional[AsyncSession] = field(default=None, repr=False)

    @classmethod
    def from_session(cls, session: AsyncSession) -> "SqlDimensionStore":
        return cls(
            catalog=SqlCatalogRepository(session),
            observations=SqlObservationRepository(session),
            packaging=SqlPackagingRepository(session),
            patterns=SqlCategoryPatternRepository(session),
            calibrations=SqlCalibrationRepository(session),
            session=session,
        )

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        """
        SAVEPOINT around the block.

        When the block raises, only its own statements are rolled back and the
        session transaction stays usable.
        """
        try:
            async with self.session.begin_nested():
                yield
        except SQLAlchemyError as e:
            logger.error("Savepoint failed", error=str(e))
            raise StoreError(str(e)) from e
