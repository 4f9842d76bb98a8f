"""
Configuration Validator - Static checks over a pricing snapshot.

Resolution tolerates misconfiguration (cycles and dangling references simply
yield no price). This validator surfaces those problems to the admin before
customers hit them.
"""
from dataclasses import dataclass, field

from ..engine.level_resolver import find_level_cycle
from ..engine.models import (
    PricingSnapshot,
    ADJUSTMENT_TYPES,
    PRECEDENCE_OPTIONS,
    ROUNDING_MODES,
    find_level,
)


@dataclass
class ValidationResult:
    """Result of configuration validation."""
    valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_error(self, error: str):
        self.errors.append(error)
        self.valid = False

    def add_warning(self, warning: str):
        self.warnings.append(warning)


def validate_configuration(snapshot: PricingSnapshot) -> ValidationResult:
    """Validate levels, global settings, volume rules and promotions."""
    result = ValidationResult()
    _validate_levels(snapshot, result)
    _validate_settings(snapshot, result)
    _validate_volume_rules(snapshot, result)
    _validate_promotions(snapshot, result)
    return result


def _validate_levels(snapshot: PricingSnapshot, result: ValidationResult):
    levels = snapshot.levels
    seen = set()
    reported_cycles = set()

    for level in levels:
        if level.id in seen:
            result.add_error(f"Duplicate price level id '{level.id}'")
        seen.add(level.id)

        if level.is_base_level:
            continue

        if not level.base_level_id:
            result.add_error(f"Derived level '{level.id}' has no base level")
            continue
        if find_level(levels, level.base_level_id) is None:
            result.add_error(f"Derived level '{level.id}' references unknown base level '{level.base_level_id}'")
            continue
        if level.adjustment_type not in ADJUSTMENT_TYPES:
            result.add_error(f"Derived level '{level.id}' has invalid adjustment type {level.adjustment_type!r}")
        if level.adjustment_value is None:
            result.add_error(f"Derived level '{level.id}' has no adjustment value")

        cycle = find_level_cycle(level, levels)
        if cycle:
            key = frozenset(cycle)
            if key not in reported_cycles:
                reported_cycles.add(key)
                result.add_error(f"Price level cycle: {' → '.join(cycle)}")


def _validate_settings(snapshot: PricingSnapshot, result: ValidationResult):
    settings = snapshot.settings

    for precedence in settings.price_precedence_order:
        if precedence not in PRECEDENCE_OPTIONS:
            result.add_error(f"Unknown precedence option {precedence!r}")
    if len(set(settings.price_precedence_order)) != len(settings.price_precedence_order):
        result.add_warning("Precedence order lists an option more than once")

    if settings.rounding_mode not in ROUNDING_MODES:
        result.add_error(f"Invalid rounding mode {settings.rounding_mode!r}")
    if settings.rounding_decimals < 0:
        result.add_warning("Negative rounding decimals round to tens or more")

    for label, level_id in (
        ('Default', settings.default_price_level_id),
        ('Fallback', settings.fallback_level_id),
    ):
        if not level_id:
            continue
        level = snapshot.find_level(level_id)
        if level is None:
            result.add_error(f"{label} price level '{level_id}' does not exist")
        elif not level.is_active:
            result.add_warning(f"{label} price level '{level_id}' is inactive")

    if (settings.min_price_floor is not None and settings.max_price_ceiling is not None
            and settings.min_price_floor > settings.max_price_ceiling):
        result.add_error("Global price floor is above the global price ceiling")


def _validate_volume_rules(snapshot: PricingSnapshot, result: ValidationResult):
    for i, rule in enumerate(snapshot.settings.volume_discount_rules, start=1):
        label = rule.id or f"#{i}"
        if rule.discount_type not in ADJUSTMENT_TYPES:
            result.add_error(f"Volume rule {label} has invalid discount type {rule.discount_type!r}")
        if rule.max_qty is not None and rule.max_qty < rule.min_qty:
            result.add_error(f"Volume rule {label} has maxQty below minQty")
        if not rule.applies_to_all_products and not rule.product_ids:
            result.add_warning(f"Volume rule {label} applies to no products")


def _validate_promotions(snapshot: PricingSnapshot, result: ValidationResult):
    for promo in snapshot.settings.time_promotions:
        label = promo.name or promo.id
        if promo.discount_type not in ADJUSTMENT_TYPES:
            result.add_error(f"Promotion '{label}' has invalid discount type {promo.discount_type!r}")
        if promo.starts_at > promo.ends_at:
            result.add_error(f"Promotion '{label}' ends before it starts")
        for level_id in promo.price_level_ids:
            if snapshot.find_level(level_id) is None:
                result.add_warning(f"Promotion '{label}' references unknown price level '{level_id}'")
