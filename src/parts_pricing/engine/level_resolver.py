"""
Level Resolver - Computes a product's price at a price level.

A level's price is either explicit (stored in the price matrix) or derived
from its base level plus a PERCENT or FIXED adjustment. Derived chains are
walked with a visited set so a misconfigured cycle resolves to None instead
of recursing forever.
"""
from typing import Optional

from .models import PriceLevel, PriceMatrix, PERCENT, FIXED, find_level


def explicit_price(product_id: str, level_id: str, matrix: PriceMatrix) -> Optional[float]:
    """Get the explicit price from the price matrix."""
    return matrix.get(product_id, level_id)


def apply_level_adjustment(base_price: float, adjustment_type: str, adjustment_value: float) -> float:
    """Apply a derived level's adjustment to its base price."""
    if adjustment_type == PERCENT:
        return base_price * (100 + adjustment_value) / 100
    if adjustment_type == FIXED:
        return base_price + adjustment_value
    return base_price


def derived_price(
    product_id: str,
    level: PriceLevel,
    levels: list[PriceLevel],
    matrix: PriceMatrix,
    visited: Optional[set[str]] = None
) -> Optional[float]:
    """
    Derive the price of ``level`` from its base level chain.

    ``visited`` holds the level ids already entered in this call chain.
    Revisiting one means the chain loops, which resolves to None.
    """
    if visited is None:
        visited = set()
    if level.id in visited:
        return None
    visited.add(level.id)

    if level.is_base_level:
        return explicit_price(product_id, level.id, matrix)

    if not level.base_level_id or not level.adjustment_type or level.adjustment_value is None:
        return None

    base_level = find_level(levels, level.base_level_id)
    if base_level is None:
        return None

    base_price = explicit_price(product_id, base_level.id, matrix)
    if base_price is None:
        base_price = derived_price(product_id, base_level, levels, matrix, visited)
    if base_price is None:
        return None

    return apply_level_adjustment(base_price, level.adjustment_type, level.adjustment_value)


def price_for_level(
    product_id: str,
    level_id: str,
    levels: list[PriceLevel],
    matrix: PriceMatrix
) -> Optional[float]:
    """
    Get the price for a specific level (explicit first, then derived).

    Unknown and inactive levels have no price.
    """
    level = find_level(levels, level_id)
    if level is None or not level.is_active:
        return None

    price = explicit_price(product_id, level_id, matrix)
    if price is not None:
        return price

    return derived_price(product_id, level, levels, matrix)


def find_level_cycle(level: PriceLevel, levels: list[PriceLevel]) -> Optional[list[str]]:
    """
    Return the ids forming a derivation cycle reachable from ``level``.

    Used by configuration validation; resolution itself only needs the
    visited-set guard in ``derived_price``.
    """
    path: list[str] = []
    current = level
    while current is not None and not current.is_base_level:
        if current.id in path:
            return path[path.index(current.id):] + [current.id]
        path.append(current.id)
        current = find_level(levels, current.base_level_id)
    return None
