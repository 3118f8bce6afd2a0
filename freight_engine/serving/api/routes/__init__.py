"""
API Routes
"""

from freight_engine.serving.api.routes.dimensions import router as dimensions_router
from freight_engine.serving.api.routes.freight import router as freight_router
from freight_engine.serving.api.routes.health import router as health_router
from freight_engine.serving.api.routes.patterns import router as patterns_router

__all__ = [
    "dimensions_router",
    "freight_router",
    "health_router",
    "patterns_router",
]
