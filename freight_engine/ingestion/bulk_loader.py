"""
Bulk Observation Loader

Loads many measurements at once, from a list of entries or a CSV file,
feeding each through the normal ingest-and-reconcile path. A failing entry
is recorded and skipped; it never aborts the batch.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, IO, List, Mapping, Optional, Sequence, Union

import polars as pl
import structlog
from pydantic import BaseModel, Field

from freight_engine.database.repositories import DimensionStore, StoreError, VariantNotFoundError
from freight_engine.domain.records import utcnow
from freight_engine.ingestion.observations import (
    MANUAL_CONFIDENCE,
    MANUAL_SOURCE,
    ingest_dimensions,
    normalize_dimensions,
)
from freight_engine.quality.validators import DimensionValidationError

logger = structlog.get_logger(__name__)

CSV_NULL_VALUES = ["", "NULL", "null", "None", "NA", "N/A"]
DIMENSION_COLUMNS = ("length", "width", "height", "weight", "boxes_per_unit", "unit", "weight_unit")


class EntryResult(BaseModel):
    """Outcome for one bulk entry"""
    variant_sku: Optional[str] = None
    success: bool
    reconciled: bool = False
    error: Optional[str] = None


class BulkIngestResult(BaseModel):
    """Summary of a bulk load"""
    total_processed: int = 0
    success_count: int = 0
    error_count: int = 0
    results: List[EntryResult] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


class BulkObservationLoader:
    """
    Bulk measurement ingestion.

    Example:
        loader = BulkObservationLoader(store)
        result = await loader.load_csv("data/cartons.csv")
    """

    def __init__(
        self,
        store: DimensionStore,
        default_source: str = MANUAL_SOURCE,
        default_confidence: float = MANUAL_CONFIDENCE,
    ):
        self.store = store
        self.default_source = default_source
        self.default_confidence = default_confidence

    async def load_entries(self, entries: Sequence[Mapping[str, Any]]) -> BulkIngestResult:
        """
        Ingest ``{variant_sku, dimensions, source, conf_level}`` entries.

        camelCase keys (``variantSku``, ``confLevel``) are accepted too.
        """
        result = BulkIngestResult()
        for entry in entries:
            entry_result = await self._load_entry(entry)
            result.results.append(entry_result)
            result.total_processed += 1
            if entry_result.success:
                result.success_count += 1
            else:
                result.error_count += 1

        result.completed_at = utcnow()
        logger.info(
            "Bulk ingest completed",
            total=result.total_processed,
            success=result.success_count,
            errors=result.error_count,
        )
        return result

    async def load_csv(self, source: Union[str, Path, IO[bytes]]) -> BulkIngestResult:
        """
        Ingest a CSV with a ``variant_sku`` column and dimension columns
        (``length, width, height, weight, boxes_per_unit, unit, weight_unit``)
        plus optional ``source`` and ``conf_level``.
        """
        df = pl.read_csv(source, null_values=CSV_NULL_VALUES, infer_schema_length=0)
        if "variant_sku" not in df.columns:
            raise ValueError("CSV must have a variant_sku column")
        logger.info("Bulk CSV read", rows=df.height, columns=df.columns)
        return await self.load_entries([self._entry_from_row(row) for row in df.iter_rows(named=True)])

    @staticmethod
    def _entry_from_row(row: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "variant_sku": row.get("variant_sku"),
            "dimensions": {k: row[k] for k in DIMENSION_COLUMNS if row.get(k) is not None},
            "source": row.get("source"),
            "conf_level": row.get("conf_level"),
        }

    async def _load_entry(self, entry: Mapping[str, Any]) -> EntryResult:
        sku = entry.get("variant_sku") or entry.get("variantSku")
        dimensions = entry.get("dimensions")
        if not sku or not dimensions:
            return EntryResult(variant_sku=sku, success=False, error="variant_sku and dimensions are required")

        normalized = normalize_dimensions(dimensions)
        conf_level = entry.get("conf_level", entry.get("confLevel"))
        try:
            async with self.store.savepoint():
                ingest = await ingest_dimensions(
                    self.store,
                    sku,
                    {
                        "length": normalized.length,
                        "width": normalized.width,
                        "height": normalized.height,
                        "weight": normalized.weight,
                        "boxesPerUnit": normalized.boxes_per_unit,
                    },
                    source=entry.get("source") or self.default_source,
                    conf_level=float(conf_level) if conf_level not in (None, "") else self.default_confidence,
                )
        except VariantNotFoundError:
            return EntryResult(variant_sku=sku, success=False, error="Variant not found")
        except DimensionValidationError as e:
            return EntryResult(variant_sku=sku, success=False, error=", ".join(e.errors))
        except (StoreError, ValueError) as e:
            logger.warning("Bulk entry failed", variant_sku=sku, error=str(e))
            return EntryResult(variant_sku=sku, success=False, error=str(e))

        return EntryResult(variant_sku=sku, success=True, reconciled=ingest.packaging is not None)
