"""Observation reconciliation"""

from freight_engine.reconciliation.reconciler import (
    IngestResult,
    insert_observation_and_reconcile,
    observation_score,
    reconcile_variant_dimensions,
    recency_weight,
)

__all__ = [
    "IngestResult",
    "insert_observation_and_reconcile",
    "observation_score",
    "reconcile_variant_dimensions",
    "recency_weight",
]
