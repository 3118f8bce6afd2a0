"""Carton volume estimation"""

from freight_engine.estimation.carton import CartonEstimate, CartonRequest, estimate_carton
from freight_engine.estimation.cuft_resolver import CubicFootEstimate, CuftSource, resolve_carton_cuft
from freight_engine.estimation.heuristics import ESTIMATORS, CategoryEstimate, estimate_by_category

__all__ = [
    "CartonEstimate",
    "CartonRequest",
    "estimate_carton",
    "CubicFootEstimate",
    "CuftSource",
    "resolve_carton_cuft",
    "ESTIMATORS",
    "CategoryEstimate",
    "estimate_by_category",
]
