"""
Dimension Endpoints

Quote-time dimension lookup and measurement ingestion.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from freight_engine.database.repositories import DimensionStore
from freight_engine.ingestion.bulk_loader import BulkIngestResult, BulkObservationLoader
from freight_engine.ingestion.observations import MANUAL_CONFIDENCE, MANUAL_SOURCE, ingest_dimensions
from freight_engine.resolution.service import resolve_variant_dimensions
from freight_engine.serving.api.deps import get_store

router = APIRouter()


class DimensionsIn(BaseModel):
    """Measured carton, inches and pounds"""
    model_config = ConfigDict(populate_by_name=True)

    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    weight: Optional[float] = None
    boxes_per_unit: int = Field(default=1, alias="boxesPerUnit")


class IngestRequest(BaseModel):
    """Single measurement for a variant"""
    model_config = ConfigDict(populate_by_name=True)

    variant_sku: str = Field(alias="variantSku", min_length=1)
    dimensions: DimensionsIn
    source: str = MANUAL_SOURCE
    conf_level: float = Field(default=MANUAL_CONFIDENCE, alias="confLevel", ge=0, le=1)


class IngestResponse(BaseModel):
    success: bool
    observation_id: Optional[int] = Field(default=None, serialization_alias="observationId")
    reconciled: bool


class BulkIngestRequest(BaseModel):
    entries: List[Dict[str, Any]] = Field(min_length=1)


@router.get("/quote/dimensions")
async def get_quote_dimensions(
    variant_sku: Optional[str] = Query(default=None, alias="variantSku"),
    store: DimensionStore = Depends(get_store),
) -> Dict[str, Any]:
    """
    Best-known shipping dimensions for a variant.

    Falls back from reconciled packaging to the latest confident
    observation, the learned category pattern and finally safe defaults.
    """
    if not variant_sku:
        raise HTTPException(status_code=400, detail="variantSku query parameter is required")
    resolution = await resolve_variant_dimensions(store, variant_sku)
    return resolution.to_dict()


@router.post("/dimensions/ingest", response_model=IngestResponse, response_model_by_alias=True)
async def post_dimensions(
    request: IngestRequest,
    store: DimensionStore = Depends(get_store),
) -> IngestResponse:
    """Record a measurement and reconcile the variant's packaging."""
    result = await ingest_dimensions(
        store,
        request.variant_sku,
        request.dimensions.model_dump(by_alias=True),
        source=request.source,
        conf_level=request.conf_level,
    )

    return IngestResponse(
        success=True,
        observation_id=result.observation.id,
        reconciled=result.packaging is not None,
    )


@router.post("/dimensions/bulk-ingest", response_model=BulkIngestResult)
async def post_bulk_dimensions(
    request: BulkIngestRequest,
    store: DimensionStore = Depends(get_store),
) -> BulkIngestResult:
    """Ingest many measurements; failing entries are reported, not raised."""
    loader = BulkObservationLoader(store)
    return await loader.load_entries(request.entries)
