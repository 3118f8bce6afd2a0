"""
API Dependencies
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from freight_engine.database.connection import get_db_dependency
from freight_engine.database.repositories import DimensionStore, SqlDimensionStore


async def get_store(db: AsyncSession = Depends(get_db_dependency)) -> DimensionStore:
    """Repositories bound to the request's database session."""
    return SqlDimensionStore.from_session(db)
