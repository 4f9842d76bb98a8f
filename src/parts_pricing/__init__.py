"""
Parts Pricing Package

Multi-level price resolution for the auto-parts marketplace.
Resolves a product's price through custom rules, explicit and derived price
levels, then customer adjustments, volume discounts, promotions and rounding.
"""

__version__ = "1.0.0"
