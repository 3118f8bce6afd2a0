"""
Database Models - Catalog & Packaging Schema

Relational layout of the engine's persisted state:

Catalog Tables:
- Product: Product title, vendor and breadcrumb trail
- Variant: Sellable SKUs of a product

Measurement Tables:
- DimensionObservationRow: Append-only package measurements per variant
- PackagingRow: One authoritative reconciled record per variant (upsert target)

Learned Tables:
- CategoryPatternRow: Carton statistics per leaf category (upsert target)
- CartonCalibrationRow: Estimated-vs-actual carton volume multipliers
"""

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from freight_engine.domain.records import new_id


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# CATALOG
# =============================================================================

class Product(Base):
    """Catalog product; breadcrumbs drive category classification"""
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    vendor: Mapped[Optional[str]] = mapped_column(String(200))
    breadcrumbs: Mapped[List[Any]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    variants: Mapped[List["Variant"]] = relationship(back_populates="product")


class Variant(Base):
    """Sellable SKU of a product"""
    __tablename__ = "variants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), nullable=False)
    variant_sku: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    title: Mapped[Optional[str]] = mapped_column(String(500))

    product: Mapped["Product"] = relationship(back_populates="variants")
    packaging: Mapped[Optional["PackagingRow"]] = relationship(back_populates="variant")


# =============================================================================
# MEASUREMENTS
# =============================================================================

class DimensionObservationRow(Base):
    """
    Dimension Observation Table

    Append-only: rows are inserted once and never updated. Newer or more
    trusted rows supersede older ones only logically, at reconciliation.
    """
    __tablename__ = "dimension_observations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    variant_id: Mapped[str] = mapped_column(ForeignKey("variants.id"), nullable=False)
    source: Mapped[str] = mapped_column(String(20), nullable=False)
    length_in: Mapped[Optional[float]] = mapped_column(Float)
    width_in: Mapped[Optional[float]] = mapped_column(Float)
    height_in: Mapped[Optional[float]] = mapped_column(Float)
    weight_lb: Mapped[Optional[float]] = mapped_column(Float)
    boxes_per_unit: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    confidence_level: Mapped[float] = mapped_column(Float, nullable=False, default=0.8)
    observed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_dimension_observations_variant_observed", "variant_id", "observed_at"),
    )


class PackagingRow(Base):
    """Authoritative reconciled carton record, one row per variant"""
    __tablename__ = "packaging"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    variant_id: Mapped[str] = mapped_column(ForeignKey("variants.id"), unique=True, nullable=False)
    box_length_in: Mapped[float] = mapped_column(Float, nullable=False)
    box_width_in: Mapped[float] = mapped_column(Float, nullable=False)
    box_height_in: Mapped[float] = mapped_column(Float, nullable=False)
    box_weight_lb: Mapped[float] = mapped_column(Float, nullable=False)
    boxes_per_unit: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    reconciled_source: Mapped[str] = mapped_column(String(20), nullable=False)
    reconciled_conf_level: Mapped[float] = mapped_column(Float, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    variant: Mapped["Variant"] = relationship(back_populates="packaging")


# =============================================================================
# LEARNED STATISTICS
# =============================================================================

class CategoryPatternRow(Base):
    """Learned carton statistics per leaf category"""
    __tablename__ = "category_patterns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    avg_length: Mapped[float] = mapped_column(Float, nullable=False)
    avg_width: Mapped[float] = mapped_column(Float, nullable=False)
    avg_height: Mapped[float] = mapped_column(Float, nullable=False)
    avg_weight: Mapped[Optional[float]] = mapped_column(Float)
    min_length: Mapped[float] = mapped_column(Float, nullable=False)
    min_width: Mapped[float] = mapped_column(Float, nullable=False)
    min_height: Mapped[float] = mapped_column(Float, nullable=False)
    min_weight: Mapped[float] = mapped_column(Float, nullable=False)
    max_length: Mapped[float] = mapped_column(Float, nullable=False)
    max_width: Mapped[float] = mapped_column(Float, nullable=False)
    max_height: Mapped[float] = mapped_column(Float, nullable=False)
    max_weight: Mapped[float] = mapped_column(Float, nullable=False)
    sample_count: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class CartonCalibrationRow(Base):
    """Smoothed actual/estimated carton volume ratio per calibration key"""
    __tablename__ = "carton_calibrations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(300), unique=True, nullable=False)
    multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    samples: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
