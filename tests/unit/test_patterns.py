"""
Unit Tests - Category Pattern Learner
"""
import polars as pl
import pytest

from freight_engine.domain.records import CategoryPattern, ObservationSource, PackagingRecord
from freight_engine.learning.patterns import (
    aggregate_patterns,
    extract_leaf_category,
    get_category_pattern,
    refresh_category_patterns,
)


def _packaging(variant_id, l, w, h, weight=None):
    return PackagingRecord(
        variant_id=variant_id,
        box_length_in=l,
        box_width_in=w,
        box_height_in=h,
        box_weight_lb=weight,
        boxes_per_unit=1,
        reconciled_source=ObservationSource.MANUAL,
        reconciled_conf_level=0.95,
    )


class TestLeafCategory:

    @pytest.mark.parametrize("breadcrumbs,expected", [
        (["Home", "Furniture", "Sofas"], "Sofas"),
        (["Home", "Sofas", "SKU: 12345"], "Sofas"),
        ([{"name": "Home"}, {"name": "Beds"}], "Beds"),
        ('["Home", "Rugs"]', "Rugs"),
        ("Home > Outdoor > Umbrellas", "Umbrellas"),
        ("42", "42"),
        ({"name": "Lamps"}, "Lamps"),
        ([], "Uncategorized"),
        (None, "Uncategorized"),
    ])
    def test_extract_leaf_category(self, breadcrumbs, expected):
        assert extract_leaf_category(breadcrumbs) == expected


class TestAggregate:
    """Tests for polars aggregation"""

    def test_statistics_per_category(self):
        df = pl.DataFrame({
            "category": ["Sofas", "Sofas", "Chairs"],
            "length": [80.0, 90.0, 30.0],
            "width": [40.0, 44.0, 30.0],
            "height": [30.0, 34.0, 36.0],
            "weight": [100.0, None, None],
        })

        patterns = {p.category: p for p in aggregate_patterns(df)}

        sofas = patterns["Sofas"]
        assert sofas.avg_length == 85.0
        assert sofas.min_width == 40.0
        assert sofas.max_height == 34.0
        assert sofas.avg_weight == 100.0
        assert sofas.sample_count == 2

        chairs = patterns["Chairs"]
        assert chairs.avg_weight is None
        assert chairs.min_weight == 10.0
        assert chairs.max_weight == 50.0
        assert chairs.sample_count == 1

    def test_empty_frame(self):
        df = pl.DataFrame(schema={"category": pl.Utf8, "length": pl.Float64})
        assert aggregate_patterns(df) == []


class TestRefresh:
    """Tests for the learner run"""

    async def test_refresh_writes_every_category(self, store):
        sofa_a = store.catalog.add_variant("SOFA-A", ["Home", "Sofas"])
        sofa_b = store.catalog.add_variant("SOFA-B", ["Home", "Sofas"])
        chair = store.catalog.add_variant("CHAIR-A", ["Home", "Chairs"])
        store.catalog.add_variant("NO-PKG", ["Home", "Lamps"])
        await store.packaging.upsert(_packaging(sofa_a.id, 80, 40, 30, 100))
        await store.packaging.upsert(_packaging(sofa_b.id, 90, 44, 34, 120))
        await store.packaging.upsert(_packaging(chair.id, 30, 30, 36))

        result = await refresh_category_patterns(store)

        assert result.success is True
        assert result.categories_updated == 2
        assert set(store.patterns.patterns) == {"Sofas", "Chairs"}
        assert store.patterns.patterns["Sofas"].avg_weight == 110.0

    async def test_refresh_is_idempotent(self, store):
        variant = store.catalog.add_variant("SOFA-A", ["Home", "Sofas"])
        await store.packaging.upsert(_packaging(variant.id, 80, 40, 30, 100))

        await refresh_category_patterns(store)
        first = dict(store.patterns.patterns)
        await refresh_category_patterns(store)

        assert store.patterns.patterns == first

    async def test_store_failure_reports_and_writes_nothing(self, store):
        variant = store.catalog.add_variant("SOFA-A", ["Home", "Sofas"])
        await store.packaging.upsert(_packaging(variant.id, 80, 40, 30, 100))
        store.patterns.fail_on.add("upsert_many")

        result = await refresh_category_patterns(store)

        assert result.success is False
        assert "unavailable" in result.error
        assert store.patterns.patterns == {}
        assert result.to_dict()["success"] is False

    async def test_get_pattern_swallows_store_failure(self, store):
        store.patterns.fail_on.add("get_by_key")
        assert await get_category_pattern(store, "Sofas") is None

    async def test_get_pattern(self, store):
        pattern = CategoryPattern(
            category="Rugs", avg_length=60, avg_width=10, avg_height=10, avg_weight=20,
            min_length=50, min_width=9, min_height=9, min_weight=15,
            max_length=70, max_width=11, max_height=11, max_weight=25, sample_count=4,
        )
        await store.patterns.upsert_many([pattern])
        assert await get_category_pattern(store, "Rugs") == pattern
