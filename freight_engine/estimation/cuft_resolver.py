"""
Cubic-Foot Resolver

Single-item carton volume from the best evidence available, in order:

1. An explicit multi-box manifest (one ``H x W x D`` per line)
2. Scraped single-box dimensions
3. A per-category fallback constant

The minimum-charge floor (skipped for manifests), the safety factor and the
global clamp are then applied exactly once, and the intermediate values are
kept on the result for audit.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

import structlog

from freight_engine.config import get_settings
from freight_engine.config.settings import CartonSettings
from freight_engine.geometry.units import BoxDims, box_volume_ft3, parse_boxes_text, round2, to_number

logger = structlog.get_logger(__name__)


class CuftSource(str, Enum):
    ACTUAL_BOXES = "actual_boxes"
    SCRAPED_DIMS = "scraped_dims"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class CubicFootEstimate:
    """Resolved carton volume with its computation trail"""
    cuft: float
    source: CuftSource
    pre_min_cuft: float
    pre_safety_cuft: float
    safety_factor: float
    fallback_cuft: Optional[float] = None
    boxes: List[BoxDims] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cuft": self.cuft,
            "source": self.source.value,
            "preMinCuft": self.pre_min_cuft,
            "preSafetyCuft": self.pre_safety_cuft,
            "safetyFactor": self.safety_factor,
            "fallbackCuft": self.fallback_cuft,
            "boxes": [{"h": b.height, "w": b.width, "d": b.depth} for b in self.boxes],
            "metadata": self.metadata,
        }


ScrapedDims = Union[BoxDims, Mapping[str, Any], None]


def _coerce_dims(scraped_dims: ScrapedDims) -> Optional[BoxDims]:
    if scraped_dims is None:
        return None
    if isinstance(scraped_dims, BoxDims):
        dims = scraped_dims
    else:
        h = to_number(scraped_dims.get("h", scraped_dims.get("height")))
        w = to_number(scraped_dims.get("w", scraped_dims.get("width")))
        d = to_number(scraped_dims.get("d", scraped_dims.get("depth")))
        if h is None or w is None or d is None:
            return None
        dims = BoxDims(height=h, width=w, depth=d)
    return dims if dims.is_complete else None


def resolve_carton_cuft(
    category: Optional[str] = None,
    scraped_dims: ScrapedDims = None,
    boxes_text: Optional[str] = None,
    config: Optional[CartonSettings] = None,
) -> CubicFootEstimate:
    """
    Resolve the billable carton volume for one item.

    Never fails: with no dimensions at all the category fallback (or the
    ``other`` constant for an unknown or empty category) is used.

    Args:
        category: Category key for the fallback table
        scraped_dims: Single bounding box in inches (BoxDims or ``{h, w, d}``)
        boxes_text: Multi-line manifest, one box per line

    Returns:
        CubicFootEstimate with ``cuft`` in the configured clamp interval
    """
    config = config or get_settings().carton
    boxes = parse_boxes_text(boxes_text)
    dims = _coerce_dims(scraped_dims)
    fallback = None

    if boxes:
        raw = sum(box_volume_ft3(b.height, b.width, b.depth) for b in boxes)
        source = CuftSource.ACTUAL_BOXES
    elif dims is not None:
        raw = box_volume_ft3(dims.height, dims.width, dims.depth)
        source = CuftSource.SCRAPED_DIMS
    else:
        fallback = config.fallback_for(category)
        raw = fallback
        source = CuftSource.FALLBACK

    pre_min = round2(raw)
    pre_safety = pre_min
    if source is not CuftSource.ACTUAL_BOXES:
        pre_safety = max(pre_min, config.min_charge_cuft)

    cuft = round2(Decimal(str(pre_safety)) * Decimal(str(config.safety_factor)))
    cuft = min(max(cuft, config.min_cuft), config.max_cuft)

    logger.debug(
        "Carton cubic feet resolved",
        source=source.value,
        category=category,
        pre_min_cuft=pre_min,
        pre_safety_cuft=pre_safety,
        cuft=cuft,
    )
    return CubicFootEstimate(
        cuft=cuft,
        source=source,
        pre_min_cuft=pre_min,
        pre_safety_cuft=pre_safety,
        safety_factor=config.safety_factor,
        fallback_cuft=fallback,
        boxes=boxes,
        metadata={"category": category, "box_count": len(boxes)} if boxes else {"category": category},
    )
