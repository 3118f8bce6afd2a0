"""
Retailer classification

Sorts a product's retailer into ``high``, ``value`` or ``neutral`` from its
domain, brand, breadcrumbs and title, against the configured retailer lists.
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from freight_engine.config import get_settings
from freight_engine.config.settings import FreightSettings
from freight_engine.domain.facts import ProductFacts


@dataclass(frozen=True)
class RetailerProfile:
    tier: str
    host: Optional[str]


def domain_from_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    host = urlparse(url if "//" in url else f"//{url}").hostname
    if not host:
        return None
    host = host.lower()
    return host[4:] if host.startswith("www.") else host


def classify_retailer(facts: ProductFacts, config: Optional[FreightSettings] = None) -> RetailerProfile:
    """
    Classify the product's retailer tier.

    An entry matches when the host contains it, or when any of host, brand,
    breadcrumbs or title mentions its first domain label (``rh.com`` -> ``rh``).
    High-end entries are checked before value entries.
    """
    config = config or get_settings().freight
    host = domain_from_url(facts.url)
    all_text = " ".join([
        host or "",
        facts.brand.lower(),
        facts.breadcrumb_text.lower(),
        facts.display_name.lower(),
    ])

    def matches(entry: str) -> bool:
        return bool(host and entry in host) or entry.split(".")[0] in all_text

    if any(matches(entry) for entry in config.high_end_retailers):
        return RetailerProfile("high", host)
    if any(matches(entry) for entry in config.value_retailers):
        return RetailerProfile("value", host)
    return RetailerProfile("neutral", host)
