"""
Dimension Observation Reconciler

Fuses the recent observations of a variant into its authoritative packaging
record. Observations are scored by source trust, reported confidence and
recency; the best complete one supplies the dimensions, and a missing
weight is borrowed only from an observation of a matching box volume.

Reconciliation is a pure function of the persisted observations, so
repeated or interleaved runs converge on the same record.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Mapping, Optional, Union

import structlog

from freight_engine.config import get_settings
from freight_engine.config.settings import ReconciliationSettings
from freight_engine.database.repositories import DimensionStore, StoreError
from freight_engine.domain.records import (
    DimensionObservation,
    ObservationSource,
    PackagingRecord,
    as_utc,
    utcnow,
)
from freight_engine.geometry.units import to_number
from freight_engine.quality.validators import (
    DimensionValidationError,
    validate_observation,
    validate_packaging,
)

logger = structlog.get_logger(__name__)

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class ScoredObservation:
    observation: DimensionObservation
    score: float


@dataclass(frozen=True)
class IngestResult:
    """Outcome of one insert-and-reconcile call"""
    observation: DimensionObservation
    packaging: Optional[PackagingRecord]


def effective_confidence(confidence: Optional[float], config: ReconciliationSettings) -> float:
    """Reported confidence, or the default when missing or zero."""
    return confidence or config.default_confidence


def recency_weight(
    observed_at: datetime,
    now: Optional[datetime] = None,
    config: Optional[ReconciliationSettings] = None,
) -> float:
    """Linear decay over the horizon, never below the floor."""
    config = config or get_settings().reconciliation
    now = as_utc(now or utcnow())
    days = (now - as_utc(observed_at)).total_seconds() / SECONDS_PER_DAY
    return max(config.recency_floor, 1.0 - days / config.recency_horizon_days)


def observation_score(
    observation: DimensionObservation,
    now: Optional[datetime] = None,
    config: Optional[ReconciliationSettings] = None,
) -> float:
    """source weight x confidence x recency weight"""
    config = config or get_settings().reconciliation
    weights = config.source_weights
    source_weight = weights.get(observation.source.value, weights.get("other", 0.95))
    confidence = effective_confidence(observation.confidence_level, config)
    return source_weight * confidence * recency_weight(observation.observed_at, now, config)


def volumes_match(volume_a: float, volume_b: float, tolerance: float = 0.10) -> bool:
    """True when the two volumes are within ``tolerance`` of each other."""
    if not volume_a or not volume_b:
        return False
    ratio = volume_a / volume_b
    return 1 - tolerance <= ratio <= 1 + tolerance


def observation_from_payload(
    variant_id: str,
    payload: Mapping[str, Any],
    config: Optional[ReconciliationSettings] = None,
) -> DimensionObservation:
    """
    Build an observation from a loose ingestion payload.

    Accepts ``length``/``length_in``, ``weight``/``weight_lb``,
    ``boxesPerUnit``/``boxes_per_unit`` and ``confLevel``/``conf_level``.

    Raises:
        DimensionValidationError: On an unknown source
    """
    config = config or get_settings().reconciliation

    def pick(*keys):
        for key in keys:
            if payload.get(key) is not None:
                return payload[key]
        return None

    raw_source = pick("source")
    try:
        source = ObservationSource(str(raw_source).strip().lower()) if raw_source else ObservationSource.OTHER
    except ValueError:
        raise DimensionValidationError([f"unknown source {raw_source!r}"], ["source"])

    confidence = to_number(pick("confLevel", "conf_level", "confidence_level"))
    boxes = to_number(pick("boxesPerUnit", "boxes_per_unit"))
    if boxes is not None and boxes == int(boxes):
        boxes = int(boxes)
    observed_at = pick("observedAt", "observed_at")
    return DimensionObservation(
        variant_id=variant_id,
        source=source,
        length_in=to_number(pick("length", "length_in", "box_length_in")),
        width_in=to_number(pick("width", "width_in", "box_width_in")),
        height_in=to_number(pick("height", "height_in", "box_height_in")),
        weight_lb=to_number(pick("weight", "weight_lb", "box_weight_lb")),
        boxes_per_unit=1 if boxes is None else boxes,
        confidence_level=effective_confidence(confidence, config),
        observed_at=as_utc(observed_at) if isinstance(observed_at, datetime) else utcnow(),
    )


async def reconcile_variant_dimensions(
    store: DimensionStore,
    variant_id: str,
    now: Optional[datetime] = None,
    config: Optional[ReconciliationSettings] = None,
) -> Optional[PackagingRecord]:
    """
    Recompute and upsert the packaging record for a variant.

    Returns:
        The written PackagingRecord, or None when no complete observation
        exists, the result fails validation, or the store fails. In every
        None case the previous record stays authoritative.
    """
    config = config or get_settings().reconciliation
    log = logger.bind(variant_id=variant_id)

    try:
        async with store.savepoint():
            observations = await store.observations.recent(variant_id, config.observation_window)
    except StoreError as e:
        log.error("Reconciliation skipped, observations unavailable", error=str(e))
        return None

    if not observations:
        log.info("No observations to reconcile")
        return None

    scored: List[ScoredObservation] = sorted(
        (ScoredObservation(obs, observation_score(obs, now, config)) for obs in observations),
        key=lambda s: s.score,
        reverse=True,
    )
    best = next((s for s in scored if s.observation.is_complete), None)
    if best is None:
        log.info("No complete observations to reconcile", observations=len(observations))
        return None

    chosen = best.observation
    weight = chosen.weight_lb if chosen.weight_lb and chosen.weight_lb > 0 else None
    weight_source = chosen.source.value if weight else None

    if weight is None:
        for candidate in scored:
            obs = candidate.observation
            if candidate is best or not obs.is_complete or not obs.weight_lb or obs.weight_lb <= 0:
                continue
            if volumes_match(chosen.volume_in3, obs.volume_in3, config.weight_match_tolerance):
                weight = obs.weight_lb
                weight_source = obs.source.value
                log.info("Weight borrowed from matching observation", source=weight_source, weight_lb=weight)
                break

    confidence = effective_confidence(chosen.confidence_level, config)
    record = PackagingRecord(
        variant_id=variant_id,
        box_length_in=chosen.length_in,
        box_width_in=chosen.width_in,
        box_height_in=chosen.height_in,
        box_weight_lb=weight if weight is not None else config.default_weight_lb,
        boxes_per_unit=chosen.boxes_per_unit or 1,
        reconciled_source=chosen.source,
        reconciled_conf_level=min(config.conf_max, max(config.conf_min, confidence)),
    )

    validation = validate_packaging(record, config)
    if not validation.is_valid:
        log.error("Reconciled record failed validation", errors=validation.errors)
        return None

    try:
        async with store.savepoint():
            await store.packaging.upsert(record)
    except StoreError as e:
        log.error("Reconciliation skipped, packaging upsert failed", error=str(e))
        return None

    log.info(
        "Variant dimensions reconciled",
        source=record.reconciled_source.value,
        score=round(best.score, 3),
        conf_level=record.reconciled_conf_level,
        dims=[record.box_length_in, record.box_width_in, record.box_height_in],
        weight_lb=record.box_weight_lb,
        weight_source=weight_source or "default",
    )
    return record


async def insert_observation_and_reconcile(
    store: DimensionStore,
    variant_id: str,
    observation: Union[DimensionObservation, Mapping[str, Any]],
    now: Optional[datetime] = None,
    config: Optional[ReconciliationSettings] = None,
) -> IngestResult:
    """
    Validate and append an observation, then reconcile its variant.

    Raises:
        DimensionValidationError: When the observation violates any rule
        StoreError: When the observation cannot be inserted
    """
    config = config or get_settings().reconciliation
    if not isinstance(observation, DimensionObservation):
        observation = observation_from_payload(variant_id, observation, config)

    validate_observation(observation, config)
    stored = await store.observations.insert(observation)

    logger.info(
        "Observation inserted",
        variant_id=variant_id,
        source=stored.source.value,
        dims=[stored.length_in, stored.width_in, stored.height_in],
        weight_lb=stored.weight_lb,
        conf_level=stored.confidence_level,
    )

    packaging = await reconcile_variant_dimensions(store, variant_id, now=now, config=config)
    return IngestResult(observation=stored, packaging=packaging)
