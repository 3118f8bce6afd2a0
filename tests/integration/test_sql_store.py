"""
Integration Tests - SQLAlchemy Dimension Store
"""
from dataclasses import replace

import pytest
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError

from freight_engine.database.models import DimensionObservationRow, PackagingRow, Product, Variant
from freight_engine.database.repositories import SqlDimensionStore, StoreError
from freight_engine.domain.records import ObservationSource, PackagingRecord
from freight_engine.estimation.calibration import get_multiplier, update_ema
from freight_engine.ingestion.bulk_loader import BulkObservationLoader
from freight_engine.learning.patterns import get_category_pattern, refresh_category_patterns
from freight_engine.reconciliation.reconciler import insert_observation_and_reconcile
from freight_engine.resolution.service import ResolutionTier, resolve_variant_dimensions


@pytest.fixture
async def sql_store(test_db):
    """SQL store seeded with two sofa variants"""
    product = Product(title="Harbor Sofa", vendor="Acme", breadcrumbs=["Furniture", "Sofas"])
    test_db.add(product)
    test_db.add_all([
        Variant(product=product, variant_sku="SOFA-001", title="Grey"),
        Variant(product=product, variant_sku="SOFA-002", title="Blue"),
    ])
    await test_db.flush()
    return SqlDimensionStore.from_session(test_db)


class TestSqlCatalog:

    async def test_variant_by_sku(self, sql_store):
        variant = await sql_store.catalog.get_variant_by_sku("SOFA-001")

        assert variant.variant_sku == "SOFA-001"
        assert variant.product_title == "Harbor Sofa"
        assert variant.breadcrumbs == ["Furniture", "Sofas"]

    async def test_unknown_sku(self, sql_store):
        assert await sql_store.catalog.get_variant_by_sku("NOPE") is None


class TestSqlReconciliation:
    """Observation insert and packaging upsert against a real schema"""

    async def test_insert_and_reconcile(self, sql_store):
        variant = await sql_store.catalog.get_variant_by_sku("SOFA-001")

        result = await insert_observation_and_reconcile(sql_store, variant.id, {
            "source": "manual", "length": 84, "width": 38, "height": 34, "weight": 120, "confLevel": 0.95,
        })

        assert result.observation.id is not None
        stored = await sql_store.packaging.get_by_key(variant.id)
        assert (stored.box_length_in, stored.box_width_in, stored.box_height_in) == (84, 38, 34)
        assert stored.box_weight_lb == 120
        assert stored.reconciled_source is ObservationSource.MANUAL

    async def test_upsert_keeps_one_row_per_variant(self, sql_store):
        variant = await sql_store.catalog.get_variant_by_sku("SOFA-001")
        record = PackagingRecord(
            variant_id=variant.id,
            box_length_in=80, box_width_in=40, box_height_in=30, box_weight_lb=100,
            boxes_per_unit=1, reconciled_source=ObservationSource.ZYTE, reconciled_conf_level=0.9,
        )

        await sql_store.packaging.upsert(record)
        await sql_store.packaging.upsert(replace(record, box_length_in=82))

        stored = await sql_store.packaging.get_by_key(variant.id)
        assert stored.box_length_in == 82
        products = await sql_store.catalog.list_products_with_packaging()
        assert len(products[0].packaging) == 1

    async def test_latest_confident_observation(self, sql_store):
        variant = await sql_store.catalog.get_variant_by_sku("SOFA-002")
        await insert_observation_and_reconcile(sql_store, variant.id, {
            "source": "zyte", "length": 80, "width": 40, "height": 30, "confLevel": 0.9,
        })
        await insert_observation_and_reconcile(sql_store, variant.id, {
            "source": "zyte", "length": 81, "width": 40, "height": 30, "confLevel": 0.5,
        })

        latest = await sql_store.observations.latest_confident(variant.id, 0.7)
        recent = await sql_store.observations.recent(variant.id, 10)

        assert latest.length_in == 80
        assert [obs.length_in for obs in recent] == [81, 80]


class TestSqlPatterns:

    async def test_refresh_and_lookup(self, sql_store):
        for sku, length in (("SOFA-001", 80), ("SOFA-002", 90)):
            variant = await sql_store.catalog.get_variant_by_sku(sku)
            await insert_observation_and_reconcile(sql_store, variant.id, {
                "source": "manual", "length": length, "width": 40, "height": 30, "weight": 100,
            })

        result = await refresh_category_patterns(sql_store)
        pattern = await get_category_pattern(sql_store, "Sofas")

        assert result.success is True
        assert result.categories_updated == 1
        assert pattern.sample_count == 2
        assert pattern.avg_length == pytest.approx(85)
        assert pattern.max_length == 90

    async def test_refresh_overwrites(self, sql_store):
        variant = await sql_store.catalog.get_variant_by_sku("SOFA-001")
        await insert_observation_and_reconcile(sql_store, variant.id, {
            "source": "manual", "length": 80, "width": 40, "height": 30, "confLevel": 0.9,
        })
        await refresh_category_patterns(sql_store)
        await insert_observation_and_reconcile(sql_store, variant.id, {
            "source": "override", "length": 70, "width": 40, "height": 30, "confLevel": 0.99,
        })

        await refresh_category_patterns(sql_store)

        pattern = await get_category_pattern(sql_store, "Sofas")
        assert pattern.sample_count == 1
        assert pattern.avg_length == 70


class TestSqlCalibration:

    async def test_ema_persisted(self, sql_store):
        await update_ema(sql_store.calibrations, "rp:rh.com::sofa", 1.2)
        updated = await update_ema(sql_store.calibrations, "rp:rh.com::sofa", 0.9)

        entry = await sql_store.calibrations.get_by_key("rp:rh.com::sofa")
        assert updated == pytest.approx(1.14)
        assert entry.samples == 2
        assert await get_multiplier(sql_store.calibrations, ["rp:rh.com::sofa"]) == pytest.approx(1.14)


class TestSqlResolution:

    async def test_packaging_tier(self, sql_store):
        variant = await sql_store.catalog.get_variant_by_sku("SOFA-001")
        await insert_observation_and_reconcile(sql_store, variant.id, {
            "source": "manual", "length": 24, "width": 24, "height": 24, "weight": 40,
        })

        resolution = await resolve_variant_dimensions(sql_store, "SOFA-001")

        assert resolution.source is ResolutionTier.PACKAGING
        assert resolution.cuft == 8.0


async def _count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestSqlSavepoints:
    """A failed write inside the session only undoes its own statements"""

    async def test_failed_packaging_write_keeps_observation(self, sql_store, test_db, monkeypatch):
        variant = await sql_store.catalog.get_variant_by_sku("SOFA-001")
        nested = []

        async def broken_upsert(record):
            nested.append(test_db.in_nested_transaction())
            try:
                await test_db.execute(
                    text("INSERT INTO packaging (variant_id) VALUES (:variant_id)"),
                    {"variant_id": record.variant_id},
                )
            except SQLAlchemyError as e:
                raise StoreError(str(e)) from e

        monkeypatch.setattr(sql_store.packaging, "upsert", broken_upsert)

        result = await insert_observation_and_reconcile(sql_store, variant.id, {
            "source": "manual", "length": 84, "width": 38, "height": 34,
        })
        await test_db.commit()

        assert result.packaging is None
        assert nested == [True]
        assert await _count(test_db, DimensionObservationRow) == 1
        assert await _count(test_db, PackagingRow) == 0

    async def test_failed_bulk_entry_keeps_other_entries(self, sql_store, test_db, monkeypatch):
        insert = sql_store.observations.insert

        async def insert_rejecting_99(observation):
            if observation.length_in == 99:
                try:
                    await test_db.execute(text("INSERT INTO dimension_observations (source) VALUES ('manual')"))
                except SQLAlchemyError as e:
                    raise StoreError(str(e)) from e
            return await insert(observation)

        monkeypatch.setattr(sql_store.observations, "insert", insert_rejecting_99)

        result = await BulkObservationLoader(sql_store).load_entries([
            {"variant_sku": "SOFA-001", "dimensions": {"length": 99, "width": 40, "height": 30}},
            {"variant_sku": "SOFA-002", "dimensions": {"length": 80, "width": 40, "height": 30}},
        ])
        await test_db.commit()

        assert (result.success_count, result.error_count) == (1, 1)
        assert await _count(test_db, DimensionObservationRow) == 1
        variant = await sql_store.catalog.get_variant_by_sku("SOFA-002")
        assert (await sql_store.packaging.get_by_key(variant.id)).box_length_in == 80
