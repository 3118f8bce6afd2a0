"""
Dimension Resolution Service

Read-time lookup used by quoting. Always answers with some dimensions and a
cubic-foot figure, trying in order:

1. packaging    - the reconciled packaging record
2. observation  - the latest confident, complete observation
3. category     - the learned pattern for the variant's leaf category
4. default      - a fixed safe carton
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional

import structlog

from freight_engine.config import get_settings
from freight_engine.config.settings import ResolutionSettings
from freight_engine.database.repositories import DimensionStore, StoreError, VariantNotFoundError
from freight_engine.domain.records import VariantRef
from freight_engine.geometry.units import calculate_cubic_feet
from freight_engine.learning.patterns import extract_leaf_category

logger = structlog.get_logger(__name__)


class ResolutionTier(str, Enum):
    PACKAGING = "packaging"
    OBSERVATION = "observation"
    CATEGORY = "category"
    DEFAULT = "default"


@dataclass(frozen=True)
class ResolvedDimensions:
    length_in: float
    width_in: float
    height_in: float
    weight_lb: float
    boxes_per_unit: int = 1


@dataclass(frozen=True)
class DimensionResolution:
    """Best-known dimensions for a variant and where they came from"""
    variant_sku: str
    source: ResolutionTier
    conf_level: float
    dimensions: ResolvedDimensions
    cuft: float
    notes: str

    def to_dict(self) -> Dict[str, Any]:
        dims = asdict(self.dimensions)
        return {
            "variantSku": self.variant_sku,
            "source": self.source.value,
            "confLevel": self.conf_level,
            "dimensions": {
                "lengthIn": dims["length_in"],
                "widthIn": dims["width_in"],
                "heightIn": dims["height_in"],
                "weightLb": dims["weight_lb"],
                "boxesPerUnit": dims["boxes_per_unit"],
            },
            "cuft": self.cuft,
            "notes": self.notes,
        }


def _resolution(
    variant: VariantRef,
    tier: ResolutionTier,
    conf_level: float,
    dims: ResolvedDimensions,
    notes: str,
) -> DimensionResolution:
    cuft = calculate_cubic_feet(dims.length_in, dims.width_in, dims.height_in, dims.boxes_per_unit)
    logger.info(
        "Dimension source resolved",
        variant_sku=variant.variant_sku,
        strategy=tier.value,
        cuft=cuft,
        conf_level=conf_level,
    )
    return DimensionResolution(
        variant_sku=variant.variant_sku,
        source=tier,
        conf_level=conf_level,
        dimensions=dims,
        cuft=cuft,
        notes=notes,
    )


async def _from_packaging(
    store: DimensionStore,
    variant: VariantRef,
    config: ResolutionSettings,
) -> Optional[DimensionResolution]:
    pkg = await store.packaging.get_by_key(variant.id)
    if pkg is None or not pkg.is_complete:
        return None
    dims = ResolvedDimensions(
        length_in=pkg.box_length_in,
        width_in=pkg.box_width_in,
        height_in=pkg.box_height_in,
        weight_lb=pkg.box_weight_lb or config.default_weight_lb,
        boxes_per_unit=pkg.boxes_per_unit or 1,
    )
    source = pkg.reconciled_source.value if pkg.reconciled_source else "unknown"
    return _resolution(
        variant, ResolutionTier.PACKAGING, pkg.reconciled_conf_level,
        dims, f"Reconciled from {source} source",
    )


async def _from_observation(
    store: DimensionStore,
    variant: VariantRef,
    config: ResolutionSettings,
) -> Optional[DimensionResolution]:
    obs = await store.observations.latest_confident(variant.id, config.min_observation_conf)
    if obs is None or not obs.is_complete:
        return None
    dims = ResolvedDimensions(
        length_in=obs.length_in,
        width_in=obs.width_in,
        height_in=obs.height_in,
        weight_lb=obs.weight_lb or config.default_weight_lb,
        boxes_per_unit=obs.boxes_per_unit or 1,
    )
    return _resolution(
        variant, ResolutionTier.OBSERVATION, obs.confidence_level, dims,
        f"Latest {obs.source.value} observation from {obs.observed_at.date().isoformat()}",
    )


async def _from_category(
    store: DimensionStore,
    variant: VariantRef,
    config: ResolutionSettings,
) -> Optional[DimensionResolution]:
    if not variant.breadcrumbs:
        return None
    category = extract_leaf_category(variant.breadcrumbs)
    pattern = await store.patterns.get_by_key(category)
    if pattern is None or not pattern.avg_length or pattern.avg_length <= 0:
        return None
    dims = ResolvedDimensions(
        length_in=pattern.avg_length,
        width_in=pattern.avg_width,
        height_in=pattern.avg_height,
        weight_lb=pattern.avg_weight or config.default_weight_lb,
        boxes_per_unit=1,
    )
    return _resolution(
        variant, ResolutionTier.CATEGORY, config.category_conf, dims,
        f'Category pattern from {pattern.sample_count} samples in "{category}"',
    )


async def resolve_variant_dimensions(
    store: DimensionStore,
    variant_sku: str,
    config: Optional[ResolutionSettings] = None,
) -> DimensionResolution:
    """
    Resolve the best-known dimensions of a variant.

    A store failure inside a tier is logged and treated as "no data" for
    that tier.

    Raises:
        VariantNotFoundError: When no variant has this SKU
        StoreError: When the variant itself cannot be looked up
    """
    config = config or get_settings().resolution
    variant = await store.catalog.get_variant_by_sku(variant_sku)
    if variant is None:
        raise VariantNotFoundError(variant_sku)

    tiers = (
        (ResolutionTier.PACKAGING, lambda: _from_packaging(store, variant, config)),
        (ResolutionTier.OBSERVATION, lambda: _from_observation(store, variant, config)),
        (ResolutionTier.CATEGORY, lambda: _from_category(store, variant, config)),
    )
    for tier, lookup in tiers:
        try:
            resolution = await lookup()
        except StoreError as e:
            logger.warning("Dimension tier unavailable", variant_sku=variant_sku, tier=tier.value, error=str(e))
            continue
        if resolution is not None:
            return resolution

    dims = ResolvedDimensions(
        length_in=config.default_length_in,
        width_in=config.default_width_in,
        height_in=config.default_height_in,
        weight_lb=config.default_weight_lb,
        boxes_per_unit=1,
    )
    return _resolution(
        variant, ResolutionTier.DEFAULT, config.default_conf, dims,
        "Safe defaults (no dimension data available)",
    )
