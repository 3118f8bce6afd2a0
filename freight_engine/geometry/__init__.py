"""Unit conversion and volume geometry"""

from freight_engine.geometry.units import (
    BoxDims,
    box_volume_ft3,
    calculate_cubic_feet,
    cylinder_volume_ft3,
    parse_boxes_text,
    parse_dimensions,
    round2,
)

__all__ = [
    "BoxDims",
    "box_volume_ft3",
    "calculate_cubic_feet",
    "cylinder_volume_ft3",
    "parse_boxes_text",
    "parse_dimensions",
    "round2",
]
