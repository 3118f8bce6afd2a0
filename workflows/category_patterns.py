"""
Prefect Workflow Orchestration - Dimension Maintenance

Scheduled batch jobs around the dimension store:
- Nightly category pattern refresh
- Bulk measurement loads from CSV drops
"""

from typing import Optional

from prefect import flow, task, get_run_logger

from freight_engine.database.connection import get_db, init_database
from freight_engine.database.repositories import SqlDimensionStore
from freight_engine.ingestion.bulk_loader import BulkObservationLoader
from freight_engine.learning.patterns import refresh_category_patterns


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="refresh_category_patterns",
    description="Rebuild per-category carton statistics",
    retries=2,
    retry_delay_seconds=60,
)
async def refresh_patterns_task() -> dict:
    """Run the pattern learner in its own session"""
    logger = get_run_logger()

    async with get_db() as db:
        result = await refresh_category_patterns(SqlDimensionStore.from_session(db))

    if not result.success:
        raise RuntimeError(f"Category pattern refresh failed: {result.error}")

    logger.info(f"Refreshed {result.categories_updated} category patterns in {result.duration}s")
    return result.to_dict()


@task(
    name="load_measurement_csv",
    description="Ingest a CSV of measured cartons",
    retries=1,
    retry_delay_seconds=30,
)
async def load_measurements_task(csv_path: str, source: str = "manual") -> dict:
    """Load one CSV file of measurements"""
    logger = get_run_logger()

    async with get_db() as db:
        loader = BulkObservationLoader(SqlDimensionStore.from_session(db), default_source=source)
        result = await loader.load_csv(csv_path)

    logger.info(f"Loaded {csv_path}: {result.success_count} ok, {result.error_count} failed")
    return result.model_dump(mode="json")


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="category_pattern_refresh",
    description="Nightly rebuild of learned category carton patterns",
)
async def refresh_category_patterns_flow(database_url: Optional[str] = None) -> dict:
    """Refresh every category pattern from reconciled packaging."""
    logger = get_run_logger()
    await init_database(url=database_url)

    logger.info("Starting category pattern refresh")
    return await refresh_patterns_task()


@flow(
    name="bulk_measurement_load",
    description="Load measured cartons, then refresh category patterns",
)
async def bulk_measurement_load(
    csv_path: str,
    source: str = "manual",
    refresh_patterns: bool = True,
    database_url: Optional[str] = None,
) -> dict:
    """
    Bulk measurement load.

    Steps:
    1. Ingest and reconcile every row of the CSV
    2. Rebuild category patterns from the new packaging records
    """
    logger = get_run_logger()
    await init_database(url=database_url)

    results = {"load": await load_measurements_task(csv_path, source)}
    if refresh_patterns and results["load"]["success_count"]:
        results["patterns"] = await refresh_patterns_task()
    else:
        logger.info("Skipping pattern refresh")
    return results


# =============================================================================
# DEPLOYMENT CONFIGURATION
# =============================================================================

if __name__ == "__main__":
    import asyncio

    asyncio.run(refresh_category_patterns_flow())
