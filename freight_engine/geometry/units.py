"""
Unit & Geometry Utilities

Parsing of free-text dimension strings, inch/foot conversion and the box
and cylinder volume formulas every estimator builds on. Results are rounded
to two decimals (half-up) once, on the final value.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
import math
import re
from typing import List, Optional, Union

CUBIC_INCHES_PER_FT3 = 1728
MIN_BOX_CUFT = 1.0

Number = Union[int, float, Decimal]

_NUM = r"(\d+(?:\.\d+)?)"
_UNIT = r"\s*(?:\"|''|in(?:ch(?:es)?)?\.?(?![a-z]))?\s*"
_TRIPLE_WITH_UNIT = re.compile(
    _NUM + _UNIT + r"x\s*" + _NUM + _UNIT + r"x\s*" + _NUM + r"\s*(?:\"|''|in(?:ch(?:es)?)?(?![a-z]))"
)
_TRIPLE = re.compile(_NUM + _UNIT + r"x\s*" + _NUM + _UNIT + r"x\s*" + _NUM)
_QUOTES = str.maketrans({"“": '"', "”": '"', "″": '"', "’": "'", "′": "'", "×": "x"})


@dataclass(frozen=True)
class BoxDims:
    """A height x width x depth triple in inches"""
    height: float
    width: float
    depth: float

    @property
    def is_complete(self) -> bool:
        return self.height > 0 and self.width > 0 and self.depth > 0

    @property
    def longest_side(self) -> float:
        return max(self.height, self.width, self.depth)

    @property
    def cubic_inches(self) -> float:
        return self.height * self.width * self.depth


def round2(value: Number) -> float:
    """Round half-up to two decimals."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def to_number(value) -> Optional[float]:
    """Coerce loose scraped values ("12 in", "3.5lb") to a float."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    cleaned = re.sub(r"[^0-9.\-]+", "", str(value))
    try:
        number = float(cleaned)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def inch_to_ft(inches: float) -> float:
    return inches / 12


def cm_to_inches(cm: float) -> float:
    return cm / 2.54


def kg_to_pounds(kg: float) -> float:
    return kg * 2.20462


def parse_dimensions(text: Optional[str]) -> Optional[BoxDims]:
    """
    Extract the first ``H x W x D`` triple from free text.

    Tolerates ``×``, straight and curly quote marks and inch suffixes. A
    triple followed by an inch unit is preferred over a bare ``A x B x C``.

    Returns:
        BoxDims or None when no complete triple is found
    """
    if not text:
        return None
    normalized = str(text).translate(_QUOTES).lower()
    match = _TRIPLE_WITH_UNIT.search(normalized) or _TRIPLE.search(normalized)
    if not match:
        return None
    h, w, d = (float(g) for g in match.groups())
    if h and w and d:
        return BoxDims(height=h, width=w, depth=d)
    return None


def parse_boxes_text(boxes_text: Optional[str]) -> List[BoxDims]:
    """Parse a multi-box manifest, one ``H x W x D`` triple per line."""
    if not boxes_text:
        return []
    boxes = []
    for line in str(boxes_text).splitlines():
        dims = parse_dimensions(line.strip())
        if dims is not None:
            boxes.append(dims)
    return boxes


def box_volume_ft3(h: float, w: float, d: float) -> float:
    """Cubic feet of a box given in inches, never below 1 ft³."""
    cuft = round2(inch_to_ft(h) * inch_to_ft(w) * inch_to_ft(d))
    return max(MIN_BOX_CUFT, cuft)


def cylinder_volume_ft3(length_in: float, diameter_in: float) -> float:
    """Cubic feet of a rolled cylinder (pi r^2 l)."""
    radius_ft = inch_to_ft(diameter_in) / 2
    return round2(math.pi * radius_ft * radius_ft * inch_to_ft(length_in))


def calculate_cubic_feet(
    length: Optional[float],
    width: Optional[float],
    height: Optional[float],
    boxes_per_unit: int = 1,
) -> float:
    """Read-time cubic feet for a packaging record, 0 when incomplete."""
    if not length or not width or not height:
        return 0.0
    return round2(length * width * height / CUBIC_INCHES_PER_FT3 * (boxes_per_unit or 1))
