"""
Observation Ingestion

Boundary between upstream measurement sources (scrapers, admin entry,
spreadsheets) and the reconciler. Loose payloads are normalized to inches
and pounds here, then handed to the single write entry point.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import structlog

from freight_engine.database.repositories import DimensionStore, VariantNotFoundError
from freight_engine.geometry.units import cm_to_inches, kg_to_pounds, parse_dimensions, to_number
from freight_engine.reconciliation.reconciler import IngestResult, insert_observation_and_reconcile

logger = structlog.get_logger(__name__)

MAX_PLAUSIBLE_DIMENSION_IN = 500
MAX_PLAUSIBLE_WEIGHT_LB = 1000

PACKAGE_DIMS_CONFIDENCE = 0.90
PRODUCT_DIMS_CONFIDENCE = 0.60
PROPERTY_DIMS_CONFIDENCE = 0.85

MANUAL_SOURCE = "manual"
MANUAL_CONFIDENCE = 0.95


@dataclass(frozen=True)
class NormalizedDimensions:
    """Inches and pounds; implausible values are dropped to None"""
    length: Optional[float]
    width: Optional[float]
    height: Optional[float]
    weight: Optional[float]
    boxes_per_unit: int = 1

    @property
    def has_any(self) -> bool:
        return bool(self.length or self.width or self.height)

    def as_payload(self, source: str, conf_level: float) -> Dict[str, Any]:
        return {
            "source": source,
            "length": self.length,
            "width": self.width,
            "height": self.height,
            "weight": self.weight,
            "boxesPerUnit": self.boxes_per_unit,
            "confLevel": conf_level,
        }


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def _plausible(value: Optional[float], limit: float) -> Optional[float]:
    if value is not None and 0 < value < limit:
        return value
    return None


def normalize_dimensions(raw: Optional[Mapping[str, Any]]) -> Optional[NormalizedDimensions]:
    """
    Normalize a loose dimension mapping to inches and pounds.

    Recognizes ``length``/``L``/``box_length_in`` (and the same for width and
    height), ``weight``/``lb``/``box_weight_lb``, and converts centimetres and
    kilograms when ``unit``/``weight_unit`` says so.
    """
    if not raw:
        return None

    length = to_number(_first(raw, "length", "L", "box_length_in", "length_in"))
    width = to_number(_first(raw, "width", "W", "box_width_in", "width_in"))
    height = to_number(_first(raw, "height", "H", "box_height_in", "height_in"))
    weight = to_number(_first(raw, "weight", "lb", "box_weight_lb", "weight_lb"))

    unit = str(_first(raw, "unit", "dimension_unit") or "").lower()
    weight_unit = str(_first(raw, "weightUnit", "weight_unit") or "").lower()

    if "cm" in unit or "centimeter" in unit or "centimetre" in unit:
        length, width, height = (cm_to_inches(v) if v else None for v in (length, width, height))
    if "kg" in weight_unit or "kilogram" in weight_unit:
        weight = kg_to_pounds(weight) if weight else None

    boxes = to_number(_first(raw, "boxesPerUnit", "boxes_per_unit"))
    return NormalizedDimensions(
        length=_plausible(length, MAX_PLAUSIBLE_DIMENSION_IN),
        width=_plausible(width, MAX_PLAUSIBLE_DIMENSION_IN),
        height=_plausible(height, MAX_PLAUSIBLE_DIMENSION_IN),
        weight=_plausible(weight, MAX_PLAUSIBLE_WEIGHT_LB),
        boxes_per_unit=int(boxes) if boxes and boxes >= 1 else 1,
    )


def observations_from_scrape(payload: Mapping[str, Any], source: str = "zyte") -> List[Dict[str, Any]]:
    """
    Derive observation payloads from a scraped product.

    Package dimensions are trusted most, product dimensions (used only when
    no package dimensions exist) least, and a "shipping/package dimensions"
    property in between.
    """
    observations: List[Dict[str, Any]] = []

    package = payload.get("packageDimensions")
    if package:
        dims = normalize_dimensions(package)
        if dims and dims.has_any:
            observations.append(dims.as_payload(source, PACKAGE_DIMS_CONFIDENCE))

    product = payload.get("dimensions")
    if product and not package:
        dims = normalize_dimensions({
            "length": product.get("length"),
            "width": product.get("width"),
            "height": product.get("height"),
            "unit": product.get("unit"),
            "weight": payload.get("weight"),
            "weight_unit": payload.get("weightUnit"),
        })
        if dims and dims.has_any:
            observations.append(dims.as_payload(source, PRODUCT_DIMS_CONFIDENCE))

    properties = payload.get("additionalProperties")
    if isinstance(properties, list):
        prop_map = {
            str(prop["name"]).lower(): prop["value"]
            for prop in properties
            if isinstance(prop, dict) and prop.get("name") and prop.get("value")
        }
        text = prop_map.get("shipping dimensions") or prop_map.get("package dimensions")
        parsed = parse_dimensions(text) if text else None
        if parsed:
            observations.append({
                "source": source,
                "length": parsed.height,
                "width": parsed.width,
                "height": parsed.depth,
                "weight": None,
                "boxesPerUnit": 1,
                "confLevel": PROPERTY_DIMS_CONFIDENCE,
            })

    return observations


async def ingest_dimensions(
    store: DimensionStore,
    variant_sku: str,
    dimensions: Mapping[str, Any],
    source: str = MANUAL_SOURCE,
    conf_level: float = MANUAL_CONFIDENCE,
) -> IngestResult:
    """
    Record a measurement for a variant identified by SKU.

    Raises:
        VariantNotFoundError: Unknown SKU
        DimensionValidationError: Implausible or non-positive dimensions
    """
    variant = await store.catalog.get_variant_by_sku(variant_sku)
    if variant is None:
        raise VariantNotFoundError(variant_sku)

    payload = {
        "source": source,
        "length": dimensions.get("length"),
        "width": dimensions.get("width"),
        "height": dimensions.get("height"),
        "weight": dimensions.get("weight"),
        "boxesPerUnit": _first(dimensions, "boxesPerUnit", "boxes_per_unit") or 1,
        "confLevel": conf_level,
    }
    result = await insert_observation_and_reconcile(store, variant.id, payload)
    logger.info("Dimensions ingested", variant_sku=variant_sku, reconciled=result.packaging is not None)
    return result


async def ingest_scraped_product(
    store: DimensionStore,
    variant_id: str,
    payload: Mapping[str, Any],
    source: str = "zyte",
) -> List[IngestResult]:
    """Insert every observation a scraped product yields for one variant."""
    results = []
    for observation in observations_from_scrape(payload, source=source):
        results.append(await insert_observation_and_reconcile(store, variant_id, observation))
    return results
