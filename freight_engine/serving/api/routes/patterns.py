"""
Category Pattern Endpoints
"""

from dataclasses import asdict
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Response

from freight_engine.database.repositories import DimensionStore
from freight_engine.learning.patterns import get_category_pattern, refresh_category_patterns
from freight_engine.serving.api.deps import get_store

router = APIRouter()


@router.post("/refresh")
async def refresh_patterns(
    response: Response,
    store: DimensionStore = Depends(get_store),
) -> Dict[str, Any]:
    """Rebuild every category pattern from reconciled packaging."""
    result = await refresh_category_patterns(store)
    if not result.success:
        response.status_code = 503
    return result.to_dict()


@router.get("/{category}")
async def get_pattern(category: str, store: DimensionStore = Depends(get_store)) -> Dict[str, Any]:
    pattern = await get_category_pattern(store, category)
    if pattern is None:
        raise HTTPException(status_code=404, detail=f"No pattern for category {category}")
    return asdict(pattern)
