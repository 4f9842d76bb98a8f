"""
Rule Matcher - Matches customer rules, volume discounts and promotions.

All three rule lists are scanned in list order and the first applicable
entry wins. Admins express priority through that order.
"""
from datetime import datetime, timezone
from typing import Optional

from .level_resolver import price_for_level
from .models import (
    CustomerCustomPriceRule,
    PriceLevel,
    PriceMatrix,
    TimePromotion,
    VolumeDiscountRule,
    PERCENT,
    FIXED,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def custom_rule_applies(
    rule: CustomerCustomPriceRule,
    product_id: str,
    now: datetime,
    quantity: Optional[int] = None
) -> bool:
    """Check product scope, validity window and quantity window of a rule."""
    if rule.product_id and rule.product_id != product_id:
        return False

    # Missing bounds are unbounded on that side
    if rule.valid_from and rule.valid_from > now:
        return False
    if rule.valid_to and rule.valid_to < now:
        return False

    if quantity is not None:
        if rule.min_qty is not None and quantity < rule.min_qty:
            return False
        if rule.max_qty is not None and quantity > rule.max_qty:
            return False

    return True


def apply_custom_rule(
    rule: CustomerCustomPriceRule,
    product_id: str,
    levels: list[PriceLevel],
    matrix: PriceMatrix,
    now: Optional[datetime] = None,
    quantity: Optional[int] = None
) -> Optional[float]:
    """
    Price a product with a single customer rule.

    Returns None when the rule does not apply or its referenced level has no
    price; evaluation then continues with the next rule.
    """
    if not custom_rule_applies(rule, product_id, now or utc_now(), quantity):
        return None

    if rule.use_fixed_price and rule.fixed_price is not None:
        return rule.fixed_price

    if rule.use_percent_of_level and rule.percent_of_level is not None and rule.price_level_id_for_percent:
        level_price = price_for_level(product_id, rule.price_level_id_for_percent, levels, matrix)
        if level_price is not None:
            return level_price * rule.percent_of_level / 100

    return None


def find_custom_rule_price(
    rules: list[CustomerCustomPriceRule],
    product_id: str,
    levels: list[PriceLevel],
    matrix: PriceMatrix,
    now: datetime,
    quantity: Optional[int] = None
) -> Optional[tuple[CustomerCustomPriceRule, float]]:
    """Return the first rule that yields a price, with that price."""
    for rule in rules:
        price = apply_custom_rule(rule, product_id, levels, matrix, now, quantity)
        if price is not None:
            return rule, price
    return None


def find_volume_rule(
    rules: list[VolumeDiscountRule],
    product_id: str,
    quantity: int
) -> Optional[VolumeDiscountRule]:
    """Return the first active volume rule matching the quantity and product."""
    for rule in rules:
        if not rule.is_active:
            continue
        if quantity < rule.min_qty:
            continue
        if rule.max_qty is not None and quantity > rule.max_qty:
            continue
        if not rule.applies_to_product(product_id):
            continue
        return rule
    return None


def find_promotion(
    promotions: list[TimePromotion],
    product_id: str,
    source_level_id: Optional[str],
    now: datetime
) -> Optional[TimePromotion]:
    """
    Return the first active, running promotion for the product.

    A promotion restricted to price levels is skipped when a level supplied
    the base price and it is not one of them. Prices with no source level
    (custom rules) are not filtered by level.
    """
    for promo in promotions:
        if not promo.is_active:
            continue
        if not promo.is_running(now):
            continue
        if not promo.applies_to_product(product_id):
            continue
        if promo.price_level_ids and source_level_id and source_level_id not in promo.price_level_ids:
            continue
        return promo
    return None


def apply_discount(price: float, discount_type: str, discount_value: float) -> float:
    """Subtract a PERCENT or FIXED discount from a price."""
    if discount_type == PERCENT:
        return price - price * discount_value / 100
    if discount_type == FIXED:
        return price - discount_value
    return price
