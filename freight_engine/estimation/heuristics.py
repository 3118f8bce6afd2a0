"""
Category Heuristics Library

Per-category-family carton volume estimators. Each estimator is a pure
function of :class:`ProductFacts` that returns ``None`` when the product is
not in its family, or a :class:`CategoryEstimate` with the cubic feet and the
computation trail.

Estimators are tried in the fixed order of :data:`ESTIMATORS`; the first
match wins, so a more specific family must always sit above a generic one.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
import re
from typing import Any, Callable, Dict, Optional, Tuple

import structlog

from freight_engine.domain.facts import ProductFacts
from freight_engine.geometry.units import (
    BoxDims,
    box_volume_ft3,
    cylinder_volume_ft3,
    parse_dimensions,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CategoryEstimate:
    """Volume estimate from a category heuristic"""
    cuft: float
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CategoryMatch:
    """The estimator that fired and what it produced"""
    name: str
    estimate: CategoryEstimate

    @property
    def cuft(self) -> float:
        return self.estimate.cuft


Estimator = Callable[[ProductFacts], Optional[CategoryEstimate]]


def _round1(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _has(pattern: str, text: str) -> bool:
    """Whole-word match of any alternative, plurals included."""
    return re.search(rf"\b(?:{pattern})(?:e?s)?\b", text) is not None


def _dims(facts: ProductFacts, text: str) -> Optional[BoxDims]:
    return facts.assembled_dims or parse_dimensions(text)


def pick_size(raw: Optional[str]) -> Optional[str]:
    """Map free text to a bed size key."""
    s = (raw or "").lower()
    if "cal" in s:
        return "calking"
    if "king" in s:
        return "king"
    if "queen" in s or s == "q":
        return "queen"
    if "full" in s or "double" in s:
        return "full"
    if "twin" in s:
        return "twin"
    return None


def parse_thickness_in(raw: Optional[str], require_unit: bool = False) -> Optional[float]:
    """Read a mattress thickness such as ``12"``, ``10 in`` or ``14-inch``."""
    if not raw:
        return None
    unit = r"\s*-?\s*(?:in(?:ch(?:es)?)?\b|\")"
    pattern = r"(\d+(?:\.\d+)?)" + (unit if require_unit else r"(?:" + unit + r")?")
    match = re.search(pattern, str(raw), re.IGNORECASE)
    return float(match.group(1)) if match else None


# =============================================================================
# BEDROOM
# =============================================================================

BASE_MATTRESS_CUFT = {
    "foam": {"twin": 5.0, "full": 6.0, "queen": 7.5, "king": 9.0, "calking": 9.5},
    "hybrid": {"twin": 6.0, "full": 7.0, "queen": 8.5, "king": 10.0, "calking": 10.5},
}
MATTRESS_BASE_THICKNESS_IN = 12
MATTRESS_CUFT_PER_INCH = 0.2
MATTRESS_MAX_ADJUSTMENT = 1.5


def mattress_cuft(facts: ProductFacts) -> Optional[CategoryEstimate]:
    t = facts.text
    if not _has(r"mattress", t) and not _has(r"compressed\s+in\s+a\s+box|bed[-\s]?in[-\s]?a[-\s]?box|boxed", t):
        return None
    kind = "hybrid" if _has(r"hybrid|pocket\s*coil|innerspring", t) else "foam"
    size = (
        pick_size(facts.size)
        or pick_size(facts.prop("mattress size", "mattress_size"))
        or pick_size(" ".join(facts.variants))
        or "queen"
    )
    thickness = (
        parse_thickness_in(facts.prop("mattress thickness", "mattress_thickness"))
        or parse_thickness_in(facts.description, require_unit=True)
        or parse_thickness_in(facts.display_name, require_unit=True)
        or MATTRESS_BASE_THICKNESS_IN
    )
    base = BASE_MATTRESS_CUFT[kind][size]
    adjustment = max(0.0, thickness - MATTRESS_BASE_THICKNESS_IN) * MATTRESS_CUFT_PER_INCH
    cuft = min(base + adjustment, base + MATTRESS_MAX_ADJUSTMENT)
    return CategoryEstimate(_round1(cuft), {"type": kind, "size": size, "thickness": thickness})


BEDDING_CUFT = {"twin": 1.8, "full": 2.2, "queen": 2.6, "king": 3.1, "calking": 3.3}


def bedding_cuft(facts: ProductFacts) -> Optional[CategoryEstimate]:
    t = facts.text
    if not _has(r"duvet|comforter|quilt|insert|sham|pillowcase", t):
        return None
    if _has(r"duvet.*cover|cover only", t):
        return CategoryEstimate(1.0, {"kind": "duvet cover"})
    if _has(r"sham", t):
        return CategoryEstimate(1.0, {"kind": "sham"})
    size = pick_size(facts.size) or pick_size(facts.prop("size")) or "queen"
    cuft = BEDDING_CUFT.get(size, 2.6)
    if _has(r"light\s*weight|lightweight|summer", t):
        cuft -= 0.3
    if _has(r"heavy(?:weight)?|winter|extra\s*warm", t):
        cuft += 0.4
    return CategoryEstimate(max(1.0, _round1(cuft)), {"kind": "comforter", "size": size})


BED_FLATPACK_CUFT = {"twin": 10.0, "full": 12.0, "queen": 16.0, "king": 20.0, "calking": 21.0}


def bed_flatpack_cuft(facts: ProductFacts) -> Optional[CategoryEstimate]:
    t = facts.text
    if not _has(r"(?:day)?bed|bed\s*frame|headboard", t):
        return None
    dims = _dims(facts, t)
    if dims:
        cuft = box_volume_ft3(dims.height, dims.width, dims.depth)
        if cuft > 2:
            return CategoryEstimate(cuft, {"method": "explicit_dims"})
    size = pick_size(facts.size) or pick_size(facts.prop("size")) or "queen"
    return CategoryEstimate(BED_FLATPACK_CUFT[size], {"kind": "bed_flatpack", "size": size})


# =============================================================================
# LIVING & DINING
# =============================================================================

TABLE_LEGS_CUFT = 3.0


def dining_table_flatpack_cuft(facts: ProductFacts) -> Optional[CategoryEstimate]:
    t = facts.text
    if not _has(r"dining\s*table|table", t):
        return None
    dims = _dims(facts, t)
    if dims:
        top = box_volume_ft3(dims.height, dims.width, max(2.0, dims.depth))
        return CategoryEstimate(max(6.0, _round1(top + TABLE_LEGS_CUFT)), {"method": "explicit_dims"})
    if _has(r"84|96", t):
        return CategoryEstimate(16.0, {"len": "84-96"})
    if _has(r"72", t):
        return CategoryEstimate(14.0, {"len": 72})
    if _has(r"60", t):
        return CategoryEstimate(11.0, {"len": 60})
    if _has(r"48", t):
        return CategoryEstimate(9.0, {"len": 48})
    return CategoryEstimate(10.0, {"method": "default"})


RUG_SIZE = re.compile(r"(\d+(?:\.\d+)?)\s*[x×]\s*(\d+(?:\.\d+)?)(?:\s*(?:ft|feet|'|’))")


def rug_cuft(facts: ProductFacts) -> Optional[CategoryEstimate]:
    t = facts.text
    if not _has(r"rug", t):
        return None
    match = RUG_SIZE.search(t)
    if match:
        length_ft = float(match.group(2))
        diameter_in = 12.0 if _has(r"thick|plush|shag", t) else 9.5
        length_in = max(36.0, length_ft * 12)
        cuft = cylinder_volume_ft3(length_in, diameter_in)
        return CategoryEstimate(max(1.5, cuft), {"diamIn": diameter_in, "lenIn": length_in})
    return CategoryEstimate(2.2, {"method": "default"})


def mirror_glass_art_cuft(facts: ProductFacts) -> Optional[CategoryEstimate]:
    t = facts.text
    if not _has(r"mirror|glass|framed art|wall art", t):
        return None
    dims = _dims(facts, t)
    if dims:
        cuft = box_volume_ft3(dims.height, dims.width, max(2.5, dims.depth or 2))
        return CategoryEstimate(max(2.0, cuft), {"method": "explicit_dims"})
    return CategoryEstimate(3.5, {"method": "default"})


def sofa_cuft(facts: ProductFacts) -> Optional[CategoryEstimate]:
    # Flat per-subtype constants: listings rarely expose true carton dims
    t = facts.text
    if not _has(r"sofa|sectional|loveseat|couch", t):
        return None
    if _has(r"sectional", t):
        return CategoryEstimate(55.0, {"kind": "sectional"})
    if _has(r"loveseat", t):
        return CategoryEstimate(35.0, {"kind": "loveseat"})
    return CategoryEstimate(45.0, {"kind": "sofa"})


def casegood_cuft(facts: ProductFacts) -> Optional[CategoryEstimate]:
    t = facts.text
    if not _has(r"dresser|credenza|sideboard|buffet|chest|nightstand|bookcase|cabinet|hutch", t):
        return None
    dims = _dims(facts, t)
    if dims:
        cuft = box_volume_ft3(dims.height, dims.width, max(16.0, dims.depth))
        return CategoryEstimate(max(6.0, cuft), {"method": "explicit_dims"})
    return CategoryEstimate(18.0, {"method": "default"})


def lighting_cuft(facts: ProductFacts) -> Optional[CategoryEstimate]:
    t = facts.text
    if not _has(r"pendant|chandelier|sconce|table lamp|floor lamp|flush mount|ceiling light", t):
        return None
    if _has(r"chandelier|multi[-\s]?light", t):
        return CategoryEstimate(8.0, {"kind": "chandelier"})
    if _has(r"pendant", t):
        return CategoryEstimate(3.5, {"kind": "pendant"})
    if _has(r"sconce", t):
        return CategoryEstimate(1.2, {"kind": "sconce"})
    if _has(r"table lamp", t):
        return CategoryEstimate(2.2, {"kind": "table lamp"})
    if _has(r"floor lamp", t):
        return CategoryEstimate(4.5, {"kind": "floor lamp"})
    return CategoryEstimate(3.0, {"kind": "light"})


def seating_cuft(facts: ProductFacts) -> Optional[CategoryEstimate]:
    t = facts.text
    if not _has(r"(?:arm)?chair|stool|barstool", t):
        return None
    if _has(r"office", t):
        return CategoryEstimate(9.0, {"kind": "office chair"})
    if _has(r"barstool|counter stool", t):
        return CategoryEstimate(7.0, {"kind": "stool"})
    return CategoryEstimate(8.0, {"kind": "chair"})


def outdoor_cuft(facts: ProductFacts) -> Optional[CategoryEstimate]:
    t = facts.text
    if not _has(r"outdoor|patio|terrace|garden", t):
        return None
    if _has(r"umbrella", t):
        return CategoryEstimate(3.5, {"kind": "umbrella"})
    if _has(r"dining\s*set", t):
        return CategoryEstimate(38.0, {"kind": "outdoor dining set"})
    if _has(r"sofa|sectional", t):
        return CategoryEstimate(50.0, {"kind": "outdoor sofa"})
    if _has(r"lounger|chaise", t):
        return CategoryEstimate(20.0, {"kind": "chaise"})
    return CategoryEstimate(10.0, {"kind": "outdoor"})


# =============================================================================
# APPLIANCES, ELECTRONICS & SPECIALTY
# =============================================================================

def appliance_cuft(facts: ProductFacts) -> Optional[CategoryEstimate]:
    t = facts.text
    if not _has(r"refrigerator|fridge|\brange\b|stove|oven|dishwasher|washer|dryer|microwave", t):
        return None
    if _has(r"refrigerator|fridge", t):
        return CategoryEstimate(60.0, {"kind": "fridge"})
    if _has(r"\brange\b|stove|oven", t):
        return CategoryEstimate(40.0, {"kind": "range/oven"})
    if _has(r"dishwasher", t):
        return CategoryEstimate(25.0, {"kind": "dishwasher"})
    if _has(r"washer|dryer", t):
        return CategoryEstimate(35.0, {"kind": "laundry"})
    return CategoryEstimate(12.0, {"kind": "appliance"})


def tv_electronics_cuft(facts: ProductFacts) -> Optional[CategoryEstimate]:
    t = facts.text
    if not _has(r"\btv\b|television|monitor", t):
        return None
    if _has(r"\b(?:82|83|85)\b", t):
        return CategoryEstimate(9.0, {"size": "80s"})
    if _has(r"\b(?:75|77)\b", t):
        return CategoryEstimate(7.5, {"size": "70s"})
    if _has(r"\b(?:65|66|67)\b", t):
        return CategoryEstimate(6.0, {"size": "65"})
    if _has(r"\b55\b", t):
        return CategoryEstimate(5.0, {"size": "55"})
    return CategoryEstimate(4.0, {"size": "<55"})


def gym_cuft(facts: ProductFacts) -> Optional[CategoryEstimate]:
    t = facts.text
    if not _has(r"treadmill|elliptical|rowing machine|rower|spin bike|stationary bike|home gym", t):
        return None
    if _has(r"treadmill|elliptical", t):
        return CategoryEstimate(35.0, {"kind": "large gym"})
    if _has(r"rower|bike", t):
        return CategoryEstimate(22.0, {"kind": "bike/rower"})
    return CategoryEstimate(15.0, {"kind": "gym"})


def baby_cuft(facts: ProductFacts) -> Optional[CategoryEstimate]:
    t = facts.text
    if not _has(r"stroller|car seat|crib|bassinet|high chair|playard", t):
        return None
    if _has(r"crib", t):
        return CategoryEstimate(14.0, {"kind": "crib"})
    if _has(r"stroller", t):
        return CategoryEstimate(8.0, {"kind": "stroller"})
    return CategoryEstimate(5.0, {"kind": "baby"})


def small_decor_cuft(facts: ProductFacts) -> Optional[CategoryEstimate]:
    t = facts.text
    if not _has(r"vase|frame|clock|candle holder|throw pillow|basket|tray", t):
        return None
    return CategoryEstimate(1.0, {"kind": "small decor"})


# Evaluated top to bottom; order encodes specificity.
ESTIMATORS: Tuple[Tuple[str, Estimator], ...] = (
    ("mattress", mattress_cuft),
    ("bedding", bedding_cuft),
    ("bed_flat", bed_flatpack_cuft),
    ("table_flat", dining_table_flatpack_cuft),
    ("rug", rug_cuft),
    ("mirror", mirror_glass_art_cuft),
    ("sofa", sofa_cuft),
    ("casegood", casegood_cuft),
    ("lighting", lighting_cuft),
    ("seating", seating_cuft),
    ("outdoor", outdoor_cuft),
    ("appliance", appliance_cuft),
    ("tv", tv_electronics_cuft),
    ("gym", gym_cuft),
    ("baby", baby_cuft),
    ("decor", small_decor_cuft),
)


def estimate_by_category(facts: ProductFacts) -> Optional[CategoryMatch]:
    """Run the estimators in priority order and return the first match."""
    for name, estimator in ESTIMATORS:
        estimate = estimator(facts)
        if estimate is not None and estimate.cuft:
            logger.debug("Category heuristic matched", estimator=name, cuft=estimate.cuft)
            return CategoryMatch(name=name, estimate=estimate)
    return None
