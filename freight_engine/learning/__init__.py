"""Category pattern learning"""

from freight_engine.learning.patterns import (
    PatternRefreshResult,
    extract_leaf_category,
    get_category_pattern,
    refresh_category_patterns,
)

__all__ = [
    "PatternRefreshResult",
    "extract_leaf_category",
    "get_category_pattern",
    "refresh_category_patterns",
]
