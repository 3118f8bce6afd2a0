"""
Dimension & Freight Resolution Engine

Estimates shipping-carton volume and freight cost for retail products from
whatever evidence is available, and reconciles noisy package measurements
into one authoritative record per variant.
"""

__version__ = "1.0.0"
