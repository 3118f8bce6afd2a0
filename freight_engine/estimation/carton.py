"""
Carton / Packaging Estimator

Derives the shipped carton volume of a product from its assembled
dimensions. The vendor tier (flat-pack, neutral, assembled) scales how much
of the assembled volume survives packing; a coarse product profile carries
the shrink factor, padding and clamp band. The resulting single-box
equivalent is handed to the cubic-foot resolver so the safety factor and
global clamp are applied exactly once.
"""

from dataclasses import dataclass, field
from enum import Enum
import re
from typing import Any, Dict, List, Optional, Tuple

import structlog

from freight_engine.config import get_settings
from freight_engine.config.settings import CartonSettings
from freight_engine.domain.facts import ProductFacts
from freight_engine.estimation.cuft_resolver import CubicFootEstimate, resolve_carton_cuft
from freight_engine.geometry.units import BoxDims, CUBIC_INCHES_PER_FT3, parse_boxes_text, round2

logger = structlog.get_logger(__name__)


class VendorTier(str, Enum):
    FLATPACK = "flatpack"
    NEUTRAL = "neutral"
    ASSEMBLED = "assembled"


class TierBranch(str, Enum):
    """Which evidence decided the carton estimate"""
    ADMIN_OVERRIDE = "admin_override"
    VENDOR_TIER = "vendor_tier"
    AI_INFERRED = "ai_inferred"
    NO_ASSEMBLED_DIMS = "no_assembled_dims"


@dataclass(frozen=True)
class ProfileRule:
    factor: float
    padding: float
    boxes: int
    clamp_pct: float
    min_floor_ft3: float


PROFILE_RULES: Dict[str, ProfileRule] = {
    "sectional": ProfileRule(factor=0.50, padding=0.10, boxes=2, clamp_pct=0.55, min_floor_ft3=25.0),
    "sofa": ProfileRule(factor=0.50, padding=0.10, boxes=2, clamp_pct=0.55, min_floor_ft3=25.0),
    "chair": ProfileRule(factor=0.60, padding=0.08, boxes=1, clamp_pct=0.50, min_floor_ft3=3.0),
    "table": ProfileRule(factor=0.55, padding=0.08, boxes=2, clamp_pct=0.60, min_floor_ft3=6.0),
    "bed": ProfileRule(factor=0.35, padding=0.10, boxes=2, clamp_pct=0.70, min_floor_ft3=8.0),
    "default": ProfileRule(factor=0.65, padding=0.10, boxes=1, clamp_pct=0.50, min_floor_ft3=2.2),
}

# Profile -> key in the resolver's category fallback table
PROFILE_FALLBACK_KEYS = {"sectional": "sofa", "default": "other"}

NON_FLATPACK_PATTERN = re.compile(
    r"refrigerator|fridge|freezer|\boven\b|\brange\b|stove|dishwasher|washer|dryer|microwave"
    r"|\btv\b|television|piano|mattress|mirror|treadmill|elliptical|recliner|massage chair"
)
ASSEMBLY_PATTERN = re.compile(
    r"assembly|assemble|flat[-\s]?pack|allen (?:key|wrench)|hex key|knock[-\s]?down|\brta\b"
)


@dataclass(frozen=True)
class TierDecision:
    tier: VendorTier
    branch: TierBranch
    confidence: float
    reason: str


@dataclass
class CartonRequest:
    """Inputs for one carton estimate"""
    facts: ProductFacts
    override_boxes_text: Optional[str] = None
    vendor: Optional[str] = None
    retailer: Optional[str] = None
    category: Optional[str] = None

    @property
    def vendor_name(self) -> str:
        return (self.vendor or self.facts.vendor or self.facts.brand or "").strip().lower()


@dataclass
class CartonEstimate:
    """Carton estimate with the branch and factors that produced it"""
    cuft: float
    tier_branch: TierBranch
    profile: str
    vendor_tier: Optional[VendorTier]
    resolver: CubicFootEstimate
    vendor_confidence: Optional[float] = None
    assembled_cuft: Optional[float] = None
    base_cuft: Optional[float] = None
    boxes: int = 1
    dims: Optional[BoxDims] = None
    calibration_multiplier: float = 1.0
    notes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cuft": self.cuft,
            "tierBranch": self.tier_branch.value,
            "profile": self.profile,
            "vendorTier": self.vendor_tier.value if self.vendor_tier else None,
            "vendorConfidence": self.vendor_confidence,
            "assembledCuft": self.assembled_cuft,
            "baseCuft": self.base_cuft,
            "boxes": self.boxes,
            "dims": (
                {"h": self.dims.height, "w": self.dims.width, "d": self.dims.depth}
                if self.dims else None
            ),
            "calibrationMultiplier": self.calibration_multiplier,
            "detail": self.resolver.to_dict(),
            "notes": self.notes,
        }


def detect_profile(facts: ProductFacts) -> str:
    """Coarse packing profile from name, category and breadcrumbs."""
    text = " ".join([facts.display_name, facts.category, " ".join(facts.breadcrumbs)]).lower()
    if re.search(r"\bsectional\b", text):
        return "sectional"
    if re.search(r"\b(?:sofa|loveseat|outdoor seating)\b", text):
        return "sofa"
    if re.search(r"\b(?:armchair|chair)\b", text):
        return "chair"
    if re.search(r"\b(?:dining table|table)\b", text):
        return "table"
    if re.search(r"\b(?:bed frame|bed)\b", text):
        return "bed"
    return "default"


def detect_flatpack_category(facts: ProductFacts) -> Tuple[VendorTier, float, str]:
    """
    Text classifier for products from vendors on neither list.

    Appliances, TVs, mattresses, pianos and similar never ship flat.
    """
    text = facts.text
    hard = NON_FLATPACK_PATTERN.search(text)
    if hard:
        return VendorTier.ASSEMBLED, 0.9, f"non-flatpack keyword '{hard.group(0)}'"
    assembly = ASSEMBLY_PATTERN.search(text)
    if assembly:
        return VendorTier.FLATPACK, 0.7, f"assembly keyword '{assembly.group(0)}'"
    return VendorTier.FLATPACK, 0.6, "default"


def _listed(vendor: str, entries: List[str]) -> Optional[str]:
    if not vendor:
        return None
    for entry in entries:
        if re.search(rf"\b{re.escape(entry)}\b", vendor):
            return entry
    return None


def determine_vendor_tier(request: CartonRequest, config: Optional[CartonSettings] = None) -> TierDecision:
    """Vendor lists first, then the text classifier."""
    config = config or get_settings().carton
    vendor = request.vendor_name

    entry = _listed(vendor, config.flatpack_vendor_list)
    if entry:
        return TierDecision(VendorTier.FLATPACK, TierBranch.VENDOR_TIER, 1.0, f"flatpack vendor '{entry}'")
    entry = _listed(vendor, config.assembled_vendor_list)
    if entry:
        return TierDecision(VendorTier.ASSEMBLED, TierBranch.VENDOR_TIER, 1.0, f"assembled vendor '{entry}'")

    tier, confidence, reason = detect_flatpack_category(request.facts)
    return TierDecision(tier, TierBranch.AI_INFERRED, confidence, reason)


def _fallback_key(request: CartonRequest, profile: str, config: CartonSettings) -> str:
    """Explicit category when the fallback table knows it, else the profile's key."""
    for category in (request.category, request.facts.category):
        key = config.fallback_key(category)
        if key:
            return key
    return PROFILE_FALLBACK_KEYS.get(profile, profile)


def estimate_carton(
    request: CartonRequest,
    calibration_multiplier: float = 1.0,
    config: Optional[CartonSettings] = None,
) -> CartonEstimate:
    """
    Estimate the shipped carton volume for a product.

    Args:
        request: Product facts plus optional override manifest and vendor
        calibration_multiplier: Learned actual/estimated ratio for this
            profile and vendor tier (1.0 when uncalibrated)

    Returns:
        CartonEstimate; ``cuft`` is the resolver's safety-factored volume
    """
    config = config or get_settings().carton
    facts = request.facts
    profile = detect_profile(facts)
    rule = PROFILE_RULES[profile]
    fallback_key = _fallback_key(request, profile, config)

    if request.override_boxes_text and parse_boxes_text(request.override_boxes_text):
        resolved = resolve_carton_cuft(fallback_key, boxes_text=request.override_boxes_text, config=config)
        return _finish(CartonEstimate(
            cuft=resolved.cuft,
            tier_branch=TierBranch.ADMIN_OVERRIDE,
            profile=profile,
            vendor_tier=None,
            resolver=resolved,
            base_cuft=resolved.pre_min_cuft,
            boxes=len(resolved.boxes),
            notes=["admin override boxes"],
        ))

    decision = determine_vendor_tier(request, config)
    dims = facts.assembled_dims
    if dims is None or not dims.is_complete:
        resolved = resolve_carton_cuft(fallback_key, config=config)
        return _finish(CartonEstimate(
            cuft=max(resolved.cuft, rule.min_floor_ft3),
            tier_branch=TierBranch.NO_ASSEMBLED_DIMS,
            profile=profile,
            vendor_tier=decision.tier,
            vendor_confidence=decision.confidence,
            resolver=resolved,
            base_cuft=resolved.pre_min_cuft,
            boxes=rule.boxes,
            notes=[f"no assembled dims; category fallback '{fallback_key}'", decision.reason],
        ))

    assembled = dims.cubic_inches / CUBIC_INCHES_PER_FT3
    tier_multiplier = config.vendor_tier_multipliers.get(decision.tier.value, 1.0) * calibration_multiplier
    base = assembled * rule.factor * tier_multiplier
    notes = [decision.reason, f"profile {profile} factor {rule.factor}"]

    if decision.branch is TierBranch.AI_INFERRED or decision.tier is VendorTier.FLATPACK:
        base *= 1 + rule.padding
        notes.append(f"padding {rule.padding}")

    low = assembled * (1 - rule.clamp_pct)
    high = assembled * (1 + rule.clamp_pct)
    base = max(min(max(base, low), high), rule.min_floor_ft3)

    # Single box with the assembled proportions and the estimated volume
    scale = (base / assembled) ** (1.0 / 3.0)
    carton_dims = BoxDims(
        height=round2(dims.height * scale),
        width=round2(dims.width * scale),
        depth=round2(dims.depth * scale),
    )
    resolved = resolve_carton_cuft(fallback_key, scraped_dims=carton_dims, config=config)

    return _finish(CartonEstimate(
        cuft=max(resolved.cuft, rule.min_floor_ft3),
        tier_branch=decision.branch,
        profile=profile,
        vendor_tier=decision.tier,
        vendor_confidence=decision.confidence,
        resolver=resolved,
        assembled_cuft=round2(assembled),
        base_cuft=round2(base),
        boxes=rule.boxes,
        dims=carton_dims,
        calibration_multiplier=calibration_multiplier,
        notes=notes,
    ))


def _finish(estimate: CartonEstimate) -> CartonEstimate:
    logger.info(
        "Carton estimated",
        tier_branch=estimate.tier_branch.value,
        profile=estimate.profile,
        vendor_tier=estimate.vendor_tier.value if estimate.vendor_tier else None,
        base_cuft=estimate.base_cuft,
        cuft=estimate.cuft,
    )
    return estimate
