"""Database module"""

from freight_engine.database.connection import (
    check_database_health,
    close_database,
    get_db,
    get_db_dependency,
    init_database,
)
from freight_engine.database.models import (
    Base,
    CartonCalibrationRow,
    CategoryPatternRow,
    DimensionObservationRow,
    PackagingRow,
    Product,
    Variant,
)
from freight_engine.database.repositories import (
    DimensionStore,
    SqlDimensionStore,
    StoreError,
    VariantNotFoundError,
)

__all__ = [
    "init_database",
    "close_database",
    "get_db",
    "get_db_dependency",
    "check_database_health",
    "Base",
    "Product",
    "Variant",
    "DimensionObservationRow",
    "PackagingRow",
    "CategoryPatternRow",
    "CartonCalibrationRow",
    "DimensionStore",
    "SqlDimensionStore",
    "StoreError",
    "VariantNotFoundError",
]
