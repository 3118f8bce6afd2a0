"""
Freight Pricing Engine

Tiered strategy cascade, first applicable tier wins:

1. carton_explicit  - a known carton volume
2. cat_<family>     - the first matching category heuristic
3. weight_based     - price per pound
4. percent_of_price - a fixed share of the item price

Volume tiers price ``cuft x rate``, add the bulk multi-carton surcharge,
then apply the buffer and the combined fragile/oversize/high-end surcharge
multiplicatively: ``amount x (1 + buffer) x (1 + surcharge)``.
"""

from dataclasses import dataclass, field
import re
from typing import Any, Dict, Optional

import structlog

from freight_engine.config import get_settings
from freight_engine.config.settings import FreightSettings
from freight_engine.domain.facts import ProductFacts
from freight_engine.estimation.heuristics import estimate_by_category
from freight_engine.geometry.units import round2, to_number
from freight_engine.pricing.retailers import classify_retailer

logger = structlog.get_logger(__name__)

FRAGILE_TEXT = re.compile(r"glass|mirror")
FRAGILE_LIGHTING_TEXT = re.compile(r"glass|crystal|chandelier")
OVERSIZE_TEXT = re.compile(r"oversized|extra[-\s]?large")


@dataclass
class FreightQuoteLine:
    """Per-item freight and the trail that produced it"""
    amount: float
    mode: str
    cuft: float
    strategy_log: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"amount": self.amount, "mode": self.mode, "cuft": self.cuft, "log": self.strategy_log}


def fragile_surcharge(estimator: Optional[str], text: str, config: FreightSettings) -> float:
    if estimator == "mirror" or FRAGILE_TEXT.search(text):
        return config.fragile_pct
    if estimator == "lighting" and FRAGILE_LIGHTING_TEXT.search(text):
        return config.fragile_pct
    return 0.0


def is_oversize(facts: ProductFacts, config: FreightSettings) -> bool:
    """Any assembled dimension over the threshold, or oversize wording."""
    dims = facts.assembled_dims
    if dims is not None and dims.longest_side > config.oversize_threshold_in:
        return True
    text = " ".join([facts.title, facts.name, facts.description, facts.breadcrumb_text]).lower()
    return OVERSIZE_TEXT.search(text) is not None


def _price_volume(
    facts: ProductFacts,
    cuft: float,
    estimator: Optional[str],
    config: FreightSettings,
) -> Dict[str, Any]:
    amount = cuft * config.rate_per_ft3
    multi_carton = cuft >= config.multi_carton_threshold_cuft
    if multi_carton:
        amount *= 1 + config.multi_carton_pct

    surcharge = fragile_surcharge(estimator, facts.text, config)
    if is_oversize(facts, config):
        surcharge += config.oversize_pct
    tier = classify_retailer(facts, config).tier
    if tier == "high":
        surcharge += config.high_end_crate_pct

    amount *= 1 + config.default_buffer_pct
    amount *= 1 + surcharge
    return {
        "amount": round2(amount),
        "tier": tier,
        "surcharge_pct": round(surcharge, 4),
        "multi_carton": multi_carton,
    }


def calc_freight_smart(
    facts: ProductFacts,
    log: Optional[Dict[str, Any]] = None,
    config: Optional[FreightSettings] = None,
) -> FreightQuoteLine:
    """
    Price freight for one item.

    Args:
        facts: Normalized product facts
        log: Optional dict updated in place with the strategy trail

    Returns:
        FreightQuoteLine; ``cuft`` is 0 for the weight and price tiers
    """
    config = config or get_settings().freight
    log = log if log is not None else {}

    if facts.carton_cubic_feet and facts.carton_cubic_feet > 0:
        cuft = facts.carton_cubic_feet
        priced = _price_volume(facts, cuft, None, config)
        log.update({
            "freight_strategy": "carton_explicit",
            "cuft": cuft,
            "rate_per_ft3": config.rate_per_ft3,
            "buffer_pct": config.default_buffer_pct,
            **{k: v for k, v in priced.items() if k != "amount"},
        })
        return _quote(priced["amount"], "carton_explicit", cuft, log)

    match = estimate_by_category(facts)
    if match is not None:
        priced = _price_volume(facts, match.cuft, match.name, config)
        log.update({
            "freight_strategy": f"cat:{match.name}",
            "cuft": match.cuft,
            "rate_per_ft3": config.rate_per_ft3,
            "buffer_pct": config.default_buffer_pct,
            "meta": match.estimate.meta,
            **{k: v for k, v in priced.items() if k != "amount"},
        })
        return _quote(priced["amount"], f"cat_{match.name}", match.cuft, log)

    weight = facts.weight or to_number(facts.additional_properties.get("weight"))
    if weight:
        tier = classify_retailer(facts, config).tier
        amount = weight * config.rate_per_lb
        if tier == "high":
            amount *= 1 + config.high_end_crate_pct
        amount *= 1 + config.default_buffer_pct
        log.update({
            "freight_strategy": "weight_based",
            "weight": weight,
            "rate_per_lb": config.rate_per_lb,
            "tier": tier,
            "buffer_pct": config.default_buffer_pct,
        })
        return _quote(round2(amount), "weight_based", 0.0, log)

    price = facts.price or 0.0
    log.update({"freight_strategy": "percent_of_price", "percent": config.percent_of_price})
    return _quote(round2(price * config.percent_of_price), "percent_of_price", 0.0, log)


def _quote(amount: float, mode: str, cuft: float, log: Dict[str, Any]) -> FreightQuoteLine:
    logger.info(
        "Freight priced",
        mode=mode,
        cuft=cuft,
        amount=amount,
        surcharge_pct=log.get("surcharge_pct", 0.0),
    )
    return FreightQuoteLine(amount=amount, mode=mode, cuft=cuft, strategy_log=log)
