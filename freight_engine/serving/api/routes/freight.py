"""
Freight Endpoints

Per-item freight quotes, carton volume resolution and the actual-carton
calibration feedback loop.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field, ValidationError
import structlog

from freight_engine.database.repositories import DimensionStore
from freight_engine.domain.facts import ProductFacts
from freight_engine.estimation.calibration import estimate_carton_calibrated, record_actual_cartons
from freight_engine.estimation.carton import CartonRequest
from freight_engine.estimation.cuft_resolver import resolve_carton_cuft
from freight_engine.geometry.units import BoxDims, to_number
from freight_engine.pricing.freight import calc_freight_smart
from freight_engine.serving.api.deps import get_store

logger = structlog.get_logger(__name__)
router = APIRouter()


class CuftRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category: Optional[str] = None
    scraped_dims: Optional[Dict[str, Any]] = Field(default=None, alias="scrapedDims")
    boxes_text: Optional[str] = Field(default=None, alias="boxesText")


class CartonQuoteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product: Dict[str, Any] = Field(default_factory=dict)
    override_boxes_text: Optional[str] = Field(default=None, alias="overrideBoxesText")
    vendor: Optional[str] = None
    retailer: Optional[str] = None
    category: Optional[str] = None


class ActualCartonsRequest(BaseModel):
    """Real cartons of a delivered shipment"""
    model_config = ConfigDict(populate_by_name=True)

    retailer: Optional[str] = None
    sku: Optional[str] = None
    url: Optional[str] = None
    profile: Optional[str] = None
    vendor_tier: Optional[str] = Field(default=None, alias="vendorTier")
    boxes: List[Dict[str, Any]] = Field(default_factory=list)
    est_ft3: Optional[float] = Field(default=None, alias="estFt3")


def _facts(payload: Dict[str, Any]) -> ProductFacts:
    try:
        return ProductFacts.from_payload(payload)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False))


def _box(raw: Dict[str, Any]) -> BoxDims:
    return BoxDims(
        height=to_number(raw.get("H", raw.get("height"))) or 0.0,
        width=to_number(raw.get("W", raw.get("width"))) or 0.0,
        depth=to_number(raw.get("L", raw.get("length"))) or 0.0,
    )


@router.post("/quote")
async def quote_freight(product: Dict[str, Any]) -> Dict[str, Any]:
    """Freight for one item with the strategy trail that priced it."""
    return calc_freight_smart(_facts(product)).to_dict()


@router.post("/cuft")
async def resolve_cuft(request: CuftRequest) -> Dict[str, Any]:
    """Billable carton volume from a box manifest, scraped box or category."""
    estimate = resolve_carton_cuft(
        category=request.category,
        scraped_dims=request.scraped_dims,
        boxes_text=request.boxes_text,
    )
    return estimate.to_dict()


@router.post("/carton")
async def estimate_carton_volume(
    request: CartonQuoteRequest,
    store: DimensionStore = Depends(get_store),
) -> Dict[str, Any]:
    """Carton estimate scaled by the learned calibration multiplier."""
    carton = CartonRequest(
        facts=_facts(request.product),
        override_boxes_text=request.override_boxes_text,
        vendor=request.vendor,
        retailer=request.retailer,
        category=request.category,
    )
    estimate = await estimate_carton_calibrated(store, carton)
    return estimate.to_dict()


@router.post("/actual-cartons")
async def post_actual_cartons(
    request: ActualCartonsRequest,
    store: DimensionStore = Depends(get_store),
) -> Dict[str, Any]:
    """Feed shipped carton sizes back into the calibration multipliers."""
    if not request.retailer or not (request.sku or request.url):
        raise HTTPException(status_code=400, detail="retailer and sku or url are required")
    if not request.boxes:
        raise HTTPException(status_code=400, detail="boxes are required")

    try:
        update = await record_actual_cartons(
            store,
            retailer=request.retailer,
            profile=request.profile,
            vendor_tier=request.vendor_tier,
            boxes=[_box(raw) for raw in request.boxes],
            est_ft3=request.est_ft3,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "ok": True,
        "actualFt3": update.actual_ft3,
        "observedMultiplier": update.observed_multiplier,
        "updated": update.updated,
    }
