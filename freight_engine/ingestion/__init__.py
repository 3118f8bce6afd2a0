"""Measurement ingestion"""

from freight_engine.ingestion.bulk_loader import BulkIngestResult, BulkObservationLoader, EntryResult
from freight_engine.ingestion.observations import (
    NormalizedDimensions,
    ingest_dimensions,
    ingest_scraped_product,
    normalize_dimensions,
    observations_from_scrape,
)

__all__ = [
    "BulkIngestResult",
    "BulkObservationLoader",
    "EntryResult",
    "NormalizedDimensions",
    "ingest_dimensions",
    "ingest_scraped_product",
    "normalize_dimensions",
    "observations_from_scrape",
]
