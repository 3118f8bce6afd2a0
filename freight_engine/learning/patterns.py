"""
Category Pattern Learner

Batch job that rebuilds per-category carton statistics from every
reconciled packaging record. Products are classified by their leaf
breadcrumb; the statistics are aggregated with polars and written as one
upsert batch only after every category has been computed.
"""

from dataclasses import dataclass
import json
import re
import time
from typing import Any, List, Optional

import polars as pl
import structlog

from freight_engine.database.repositories import DimensionStore, StoreError
from freight_engine.domain.records import CategoryPattern

logger = structlog.get_logger(__name__)

UNCATEGORIZED = "Uncategorized"
DEFAULT_MIN_WEIGHT_LB = 10.0
DEFAULT_MAX_WEIGHT_LB = 50.0

_SKU_CRUMB = re.compile(r"^SKU:", re.IGNORECASE)

_SAMPLE_SCHEMA = {
    "category": pl.Utf8,
    "length": pl.Float64,
    "width": pl.Float64,
    "height": pl.Float64,
    "weight": pl.Float64,
}


@dataclass
class PatternRefreshResult:
    """Summary of one learner run"""
    success: bool
    categories_updated: int = 0
    duration: float = 0.0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        payload = {"success": self.success, "categoriesUpdated": self.categories_updated, "duration": self.duration}
        if self.error:
            payload["error"] = self.error
        return payload


def _crumb_text(crumb: Any) -> Optional[str]:
    if isinstance(crumb, dict):
        crumb = crumb.get("name")
    if crumb is None:
        return None
    text = str(crumb).strip()
    return text or None


def extract_leaf_category(breadcrumbs: Any) -> str:
    """
    Most specific breadcrumb, skipping ``SKU:`` entries.

    Accepts a list of strings or ``{name}`` dicts, a JSON-encoded list, or
    a ``" > "``-joined string. Any other value is read as a single crumb.
    """
    if not breadcrumbs:
        return UNCATEGORIZED
    crumbs = breadcrumbs
    if isinstance(breadcrumbs, str):
        try:
            crumbs = json.loads(breadcrumbs)
        except ValueError:
            crumbs = None
        if not isinstance(crumbs, list):
            crumbs = breadcrumbs.split(">")
    elif not isinstance(crumbs, (list, tuple)):
        crumbs = [crumbs]

    texts = [_crumb_text(crumb) for crumb in crumbs]
    for text in reversed(texts):
        if text and not _SKU_CRUMB.match(text):
            return text
    return texts[-1] if texts and texts[-1] else UNCATEGORIZED


def aggregate_patterns(samples: pl.DataFrame) -> List[CategoryPattern]:
    """Average/min/max per category from a frame of packaging samples."""
    if samples.is_empty():
        return []
    stats = samples.group_by("category", maintain_order=True).agg([
        pl.col("length").mean().alias("avg_length"),
        pl.col("width").mean().alias("avg_width"),
        pl.col("height").mean().alias("avg_height"),
        pl.col("weight").mean().alias("avg_weight"),
        pl.col("length").min().alias("min_length"),
        pl.col("width").min().alias("min_width"),
        pl.col("height").min().alias("min_height"),
        pl.col("weight").min().fill_null(DEFAULT_MIN_WEIGHT_LB).alias("min_weight"),
        pl.col("length").max().alias("max_length"),
        pl.col("width").max().alias("max_width"),
        pl.col("height").max().alias("max_height"),
        pl.col("weight").max().fill_null(DEFAULT_MAX_WEIGHT_LB).alias("max_weight"),
        pl.col("length").count().alias("sample_count"),
    ])
    return [CategoryPattern(**row) for row in stats.iter_rows(named=True) if row["sample_count"] > 0]


async def refresh_category_patterns(store: DimensionStore) -> PatternRefreshResult:
    """
    Rebuild every category pattern from the current packaging records.

    Any store failure aborts the run before anything is written and is
    reported as ``success=False``.
    """
    start = time.perf_counter()
    try:
        products = await store.catalog.list_products_with_packaging()
        logger.info("Pattern learning started", products=len(products))

        rows = []
        for product in products:
            category = extract_leaf_category(product.breadcrumbs)
            for pkg in product.packaging:
                if not pkg.box_length_in or not pkg.box_width_in or not pkg.box_height_in:
                    continue
                rows.append({
                    "category": category,
                    "length": float(pkg.box_length_in),
                    "width": float(pkg.box_width_in),
                    "height": float(pkg.box_height_in),
                    "weight": float(pkg.box_weight_lb) if pkg.box_weight_lb else None,
                })

        patterns = aggregate_patterns(pl.DataFrame(rows, schema=_SAMPLE_SCHEMA))
        for pattern in patterns:
            logger.debug(
                "Category pattern computed",
                category=pattern.category,
                sample_count=pattern.sample_count,
                avg_dims=[round(pattern.avg_length, 1), round(pattern.avg_width, 1), round(pattern.avg_height, 1)],
            )

        if patterns:
            await store.patterns.upsert_many(patterns)
    except StoreError as e:
        logger.error("Pattern learning failed", error=str(e))
        return PatternRefreshResult(
            success=False,
            duration=round(time.perf_counter() - start, 2),
            error=str(e),
        )

    duration = round(time.perf_counter() - start, 2)
    logger.info("Category patterns refreshed", categories_updated=len(patterns), duration=duration)
    return PatternRefreshResult(success=True, categories_updated=len(patterns), duration=duration)


async def get_category_pattern(store: DimensionStore, category: str) -> Optional[CategoryPattern]:
    """Stored pattern for a category; None when missing or the store fails."""
    try:
        return await store.patterns.get_by_key(category)
    except StoreError as e:
        logger.error("Category pattern lookup failed", category=category, error=str(e))
        return None
