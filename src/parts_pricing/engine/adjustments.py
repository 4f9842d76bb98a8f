"""
Adjustment Pipeline - Post-resolution price adjustments.

Applied only once a base price has been found, in this fixed order:

1. Customer markup / discount
2. Customer floor / ceiling
3. Global floor / ceiling
4. One volume discount
5. One time promotion
6. Rounding
7. Non-negativity

Each step that changes the price records a trace step with the before and
after values.
"""
from datetime import datetime
from decimal import Decimal, ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP
from typing import Optional

from .models import (
    CustomerPricingProfile,
    GlobalPricingSettings,
    PriceCalculationResult,
    ADJUSTMENT_TYPES,
    PERCENT,
)
from .rule_matcher import apply_discount, find_promotion, find_volume_rule


_DECIMAL_ROUNDING = {
    'ROUND': ROUND_HALF_UP,
    'CEIL': ROUND_CEILING,
    'FLOOR': ROUND_FLOOR,
}


def fmt(value: float) -> str:
    """Format a price for the trace without float noise."""
    text = f"{value:.6f}".rstrip('0').rstrip('.')
    return '0' if text == '-0' else text


def round_price(price: float, mode: str, decimals: int) -> float:
    """Round a price to ``decimals`` places using ROUND, CEIL or FLOOR."""
    rounding = _DECIMAL_ROUNDING.get(mode)
    if rounding is None:
        return price
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(str(price)).quantize(quantum, rounding=rounding))


def apply_customer_adjustment(
    price: float,
    profile: CustomerPricingProfile,
    settings: GlobalPricingSettings,
    result: PriceCalculationResult
) -> float:
    """Reconcile the customer's extra markup and discount."""
    markup = profile.extra_markup_percent or 0.0
    discount = profile.extra_discount_percent or 0.0

    if settings.allow_negative_discounts:
        effective_discount = discount
    else:
        effective_discount = min(discount, markup)
        if discount > markup:
            result.add_trace(
                "Discount Capped",
                f"Customer discount {fmt(discount)}% exceeds markup {fmt(markup)}% "
                "and negative discounts are disabled",
                f"{fmt(effective_discount)}%",
            )

    adjustment = markup - effective_discount
    if adjustment == 0:
        return price

    new_price = price * (100 + adjustment) / 100
    result.applied_markup = markup
    result.applied_discount = effective_discount
    result.add_trace(
        "Customer Markup",
        f"Markup {fmt(markup)}% - discount {fmt(effective_discount)}%: {fmt(price)} → {fmt(new_price)}",
        fmt(new_price),
    )
    return new_price


def clamp(
    price: float,
    floor: Optional[float],
    ceiling: Optional[float],
    scope: str,
    result: PriceCalculationResult
) -> float:
    """Clamp a price to optional bounds, tracing any change."""
    if floor is not None and price < floor:
        result.add_trace(f"{scope} Floor", f"Raised {fmt(price)} to floor {fmt(floor)}", fmt(floor))
        price = floor
    if ceiling is not None and price > ceiling:
        result.add_trace(f"{scope} Ceiling", f"Lowered {fmt(price)} to ceiling {fmt(ceiling)}", fmt(ceiling))
        price = ceiling
    return price


def apply_volume_discount(
    price: float,
    product_id: str,
    quantity: int,
    settings: GlobalPricingSettings,
    result: PriceCalculationResult
) -> float:
    """Apply at most one volume discount."""
    if not settings.enable_volume_discounts or not settings.volume_discount_rules:
        return price

    rule = find_volume_rule(settings.volume_discount_rules, product_id, quantity)
    if rule is None or rule.discount_type not in ADJUSTMENT_TYPES:
        return price

    new_price = apply_discount(price, rule.discount_type, rule.discount_value)
    result.applied_volume_discount = rule.discount_value
    unit = '%' if rule.discount_type == PERCENT else ''
    result.add_trace(
        "Volume Discount",
        f"Rule {rule.id or rule.min_qty} (qty {quantity} ≥ {rule.min_qty}) "
        f"{fmt(rule.discount_value)}{unit} off: {fmt(price)} → {fmt(new_price)}",
        fmt(new_price),
    )
    return new_price


def apply_time_promotion(
    price: float,
    product_id: str,
    now: datetime,
    settings: GlobalPricingSettings,
    result: PriceCalculationResult
) -> float:
    """Apply at most one running time promotion."""
    if not settings.enable_time_promotions or not settings.time_promotions:
        return price

    promo = find_promotion(settings.time_promotions, product_id, result.source_level_id, now)
    if promo is None or promo.discount_type not in ADJUSTMENT_TYPES:
        return price

    new_price = apply_discount(price, promo.discount_type, promo.discount_value)
    result.applied_promotion = promo.name
    unit = '%' if promo.discount_type == PERCENT else ''
    result.add_trace(
        "Promotion",
        f"{promo.name} {fmt(promo.discount_value)}{unit} off: {fmt(price)} → {fmt(new_price)}",
        fmt(new_price),
    )
    return new_price


def apply_rounding(price: float, settings: GlobalPricingSettings, result: PriceCalculationResult) -> float:
    if settings.rounding_mode == 'NONE':
        return price

    rounded = round_price(price, settings.rounding_mode, settings.rounding_decimals)
    if rounded != price:
        result.rounding_applied = True
        result.add_trace(
            "Rounding",
            f"{settings.rounding_mode} to {settings.rounding_decimals} decimals: {price!r} → {rounded!r}",
            fmt(rounded),
        )
    return rounded


def apply_adjustments(
    base_price: float,
    product_id: str,
    quantity: int,
    settings: GlobalPricingSettings,
    profile: Optional[CustomerPricingProfile],
    now: datetime,
    result: PriceCalculationResult
) -> float:
    """Run the full adjustment pipeline and return the final price."""
    price = base_price

    if profile is not None:
        price = apply_customer_adjustment(price, profile, settings, result)
        price = clamp(price, profile.price_floor, profile.price_ceiling, "Customer", result)

    price = clamp(price, settings.min_price_floor, settings.max_price_ceiling, "Global", result)
    price = apply_volume_discount(price, product_id, quantity, settings, result)
    price = apply_time_promotion(price, product_id, now, settings, result)
    price = apply_rounding(price, settings, result)

    if price < 0:
        result.add_trace("Non-negative", f"Negative price {fmt(price)} corrected to zero", "0")
        price = 0.0

    return price
