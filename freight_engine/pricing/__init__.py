"""Freight pricing"""

from freight_engine.pricing.freight import FreightQuoteLine, calc_freight_smart
from freight_engine.pricing.retailers import RetailerProfile, classify_retailer

__all__ = ["FreightQuoteLine", "calc_freight_smart", "RetailerProfile", "classify_retailer"]
