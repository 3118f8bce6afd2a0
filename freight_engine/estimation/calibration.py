"""
Carton calibration

Feedback loop from actually shipped cartons. Each report updates an
exponential moving average of the actual/estimated volume ratio under two
keys: retailer+profile and profile+vendor tier. Carton estimates read the
most specific stored multiplier back, bounded to a narrow band.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Optional, Sequence

import structlog

from freight_engine.config import get_settings
from freight_engine.config.settings import CartonSettings
from freight_engine.database.repositories import CalibrationRepository, DimensionStore, StoreError
from freight_engine.domain.records import CalibrationEntry, utcnow
from freight_engine.estimation.carton import (
    CartonEstimate,
    CartonRequest,
    detect_profile,
    determine_vendor_tier,
    estimate_carton,
)
from freight_engine.geometry.units import BoxDims, CUBIC_INCHES_PER_FT3
from freight_engine.pricing.retailers import domain_from_url

logger = structlog.get_logger(__name__)

OBSERVED_RATIO_MIN = 0.1
OBSERVED_RATIO_MAX = 5.0


def profile_vendor_key(profile: Optional[str], vendor_tier: Optional[str]) -> str:
    return f"pv:{profile or 'other'}::{vendor_tier or 'neutral'}"


def retailer_profile_key(retailer: Optional[str], profile: Optional[str]) -> str:
    return f"rp:{(retailer or '').lower()}::{profile or 'other'}"


def _clamp(value: float, config: CartonSettings) -> float:
    return max(config.calibration_min, min(config.calibration_max, value))


async def get_multiplier(
    repo: CalibrationRepository,
    keys: Iterable[str],
    config: Optional[CartonSettings] = None,
) -> float:
    """First stored multiplier among ``keys``, clamped; 1.0 if none."""
    config = config or get_settings().carton
    for key in keys:
        try:
            entry = await repo.get_by_key(key)
        except StoreError:
            logger.warning("Calibration lookup failed", key=key)
            continue
        if entry is not None:
            return _clamp(entry.multiplier, config)
    return 1.0


async def update_ema(
    repo: CalibrationRepository,
    key: str,
    observed: float,
    config: Optional[CartonSettings] = None,
) -> float:
    """Blend an observed ratio into the stored multiplier for ``key``."""
    config = config or get_settings().carton
    m = _clamp(observed, config)
    try:
        prev = await repo.get_by_key(key)
    except StoreError:
        logger.warning("Calibration lookup failed, treating as first sample", key=key)
        prev = None

    if prev is None:
        entry = CalibrationEntry(key=key, multiplier=m, samples=1, updated_at=utcnow())
    else:
        alpha = config.calibration_alpha
        entry = CalibrationEntry(
            key=key,
            multiplier=alpha * m + (1 - alpha) * prev.multiplier,
            samples=prev.samples + 1,
            updated_at=utcnow(),
        )
    await repo.upsert(entry)
    return entry.multiplier


@dataclass
class CalibrationUpdate:
    actual_ft3: float
    observed_multiplier: float
    updated: Dict[str, Dict[str, Any]]


def actual_volume_ft3(boxes: Sequence[BoxDims]) -> float:
    """Total volume of the shipped boxes, to the nearest half cubic foot."""
    total = sum(b.cubic_inches / CUBIC_INCHES_PER_FT3 for b in boxes if b.is_complete)
    return float((Decimal(str(total)) * 2).quantize(Decimal("1"), rounding=ROUND_HALF_UP) / 2)


async def record_actual_cartons(
    store: DimensionStore,
    retailer: str,
    profile: Optional[str],
    vendor_tier: Optional[str],
    boxes: Sequence[BoxDims],
    est_ft3: Optional[float] = None,
    config: Optional[CartonSettings] = None,
) -> CalibrationUpdate:
    """
    Record the real cartons of a shipment and update both calibration keys.

    Raises:
        ValueError: When no box has three positive dimensions
    """
    config = config or get_settings().carton
    if not any(b.is_complete for b in boxes):
        raise ValueError("at least one box with positive length, width and height is required")

    actual = actual_volume_ft3(boxes)
    estimated = est_ft3 or actual or 1.0
    observed = max(OBSERVED_RATIO_MIN, min(OBSERVED_RATIO_MAX, actual / max(0.1, estimated)))

    rp_key = retailer_profile_key(retailer, profile)
    pv_key = profile_vendor_key(profile, vendor_tier)
    m1 = await update_ema(store.calibrations, rp_key, observed, config)
    m2 = await update_ema(store.calibrations, pv_key, observed, config)

    logger.info(
        "Actual cartons recorded",
        retailer=retailer,
        profile=profile,
        vendor_tier=vendor_tier,
        actual_ft3=actual,
        observed_multiplier=observed,
    )
    return CalibrationUpdate(
        actual_ft3=actual,
        observed_multiplier=observed,
        updated={
            "retailer_profile": {"key": rp_key, "multiplier": m1},
            "profile_vendor": {"key": pv_key, "multiplier": m2},
        },
    )


async def estimate_carton_calibrated(
    store: DimensionStore,
    request: CartonRequest,
    config: Optional[CartonSettings] = None,
) -> CartonEstimate:
    """Carton estimate scaled by the learned multiplier for its profile and tier."""
    config = config or get_settings().carton
    profile = detect_profile(request.facts)
    decision = determine_vendor_tier(request, config)
    retailer = request.retailer or domain_from_url(request.facts.url)
    keys = [profile_vendor_key(profile, decision.tier.value)]
    if retailer:
        keys.insert(0, retailer_profile_key(retailer, profile))
    multiplier = await get_multiplier(store.calibrations, keys, config)
    return estimate_carton(request, calibration_multiplier=multiplier, config=config)
