"""
Pricing Engine - Multi-level price resolution with traceability.

Resolution order for one product:
1. Load settings, levels and the price matrix (cached)
2. Fetch the customer's pricing profile, if a customer is given
3. Pick the target level: customer default, else global default
4. Walk the configured precedence order (custom rule, explicit level,
   derived level) until one yields a base price
5. Fall back to another level if allowed
6. Run the adjustment pipeline (markup, clamps, volume, promotion, rounding)

Resolution misses are normal outcomes reported as ``final_price = None``
with a trace. Data fetch failures are caught here and recorded in
``errors``; they never propagate out of the price calculation calls.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from ..config.settings import get_settings, Settings
from ..data.loader import PricingDataLoader
from ..data.sources import FilePricingSource, PricingDataSource
from ..services.config_validator import ValidationResult, validate_configuration
from .adjustments import apply_adjustments, fmt
from .level_resolver import derived_price, explicit_price, price_for_level
from .models import (
    CustomerPricingProfile,
    LevelPrice,
    PriceCalculationResult,
    PriceLevel,
    PricingSnapshot,
    CUSTOM_RULE,
    LEVEL_DERIVED,
    LEVEL_EXPLICIT,
)
from .rule_matcher import find_custom_rule_price, utc_now

logger = logging.getLogger(__name__)


class PricingEngine:
    """
    Core pricing engine resolving a product's price for a customer.

    All configuration is read from the data source through a cached loader;
    the engine never mutates it.
    """

    def __init__(
        self,
        source: Optional[PricingDataSource] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        loader: Optional[PricingDataLoader] = None
    ):
        """Initialize engine with a data source (defaults to the data directory)."""
        self.settings = settings or get_settings()
        if loader is None:
            source = source or FilePricingSource(self.settings.data_dir)
            loader = PricingDataLoader(
                source,
                ttl_seconds=self.settings.cache_ttl_seconds,
                max_workers=self.settings.fetch_workers,
            )
        self.loader = loader
        self.source = loader.source
        self._clock = clock or utc_now

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_effective_price_for_customer(
        self,
        product_id: str,
        customer_id: Optional[str] = None,
        quantity: int = 1
    ) -> PriceCalculationResult:
        """
        Calculate the effective price with full traceability.

        Args:
            product_id: Product to price
            customer_id: Optional customer whose pricing profile applies
            quantity: Quantity for volume discounts

        Returns:
            PriceCalculationResult with final price, trace and errors
        """
        return self._calculate(product_id, customer_id, quantity, self._clock())

    def simulate_price_calculation(
        self,
        product_id: str,
        customer_id: Optional[str] = None,
        quantity: int = 1,
        at: Optional[datetime] = None
    ) -> PriceCalculationResult:
        """Run the full calculation as of ``at`` (defaults to now) for admin checks."""
        if at is not None and at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        return self._calculate(product_id, customer_id, quantity, at or self._clock())

    def get_batch_prices_for_customer(
        self,
        product_ids: Iterable[str],
        customer_id: Optional[str] = None,
        quantity: int = 1
    ) -> dict[str, PriceCalculationResult]:
        """
        Price several products with one data load and one profile fetch.

        Each product is resolved independently; a failure on one product is
        recorded in its own result and never aborts the batch.
        """
        product_ids = list(product_ids)
        now = self._clock()
        results: dict[str, PriceCalculationResult] = {}

        try:
            snapshot = self.loader.load()
            profile = self._fetch_profile(customer_id)
        except Exception as e:
            logger.exception("Batch pricing failed to load data for %d products", len(product_ids))
            for product_id in product_ids:
                result = PriceCalculationResult(product_id=product_id, customer_id=customer_id, quantity=quantity)
                self._record_failure(result, e)
                results[product_id] = result
            return results

        for product_id in product_ids:
            result = PriceCalculationResult(product_id=product_id, customer_id=customer_id, quantity=quantity)
            result.add_trace("Data", "Pricing data loaded (shared batch load)")
            try:
                self._resolve(product_id, customer_id, profile, snapshot, quantity, now, result)
            except Exception as e:
                logger.exception("Pricing failed for product %s", product_id)
                self._record_failure(result, e)
            results[product_id] = result

        return results

    def get_all_prices_for_product(self, product_id: str) -> list[LevelPrice]:
        """
        List the product's explicit-or-derived price at every active level.

        Bypasses precedence and customer logic; prices are not rounded.
        """
        snapshot = self.loader.load()
        active = sorted((l for l in snapshot.levels if l.is_active), key=lambda l: l.sort_order)
        return [
            LevelPrice(
                level_id=level.id,
                level_name=level.name,
                price=price_for_level(product_id, level.id, snapshot.levels, snapshot.matrix),
            )
            for level in active
        ]

    def invalidate_pricing_cache(self):
        """Force the next calculation to refetch pricing data."""
        self.loader.invalidate()

    def validate_configuration(self) -> ValidationResult:
        """Statically check the current pricing configuration."""
        return validate_configuration(self.loader.load())

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _calculate(
        self,
        product_id: str,
        customer_id: Optional[str],
        quantity: int,
        now: datetime
    ) -> PriceCalculationResult:
        result = PriceCalculationResult(product_id=product_id, customer_id=customer_id, quantity=quantity)
        try:
            snapshot = self.loader.load()
            result.add_trace("Data", "Pricing data loaded")
            profile = self._fetch_profile(customer_id)
            self._resolve(product_id, customer_id, profile, snapshot, quantity, now, result)
        except Exception as e:
            logger.exception("Pricing failed for product %s (customer %s)", product_id, customer_id)
            self._record_failure(result, e)
        return result

    def _fetch_profile(self, customer_id: Optional[str]) -> Optional[CustomerPricingProfile]:
        if not customer_id:
            return None
        return self.source.fetch_customer_pricing_profile(customer_id)

    @staticmethod
    def _record_failure(result: PriceCalculationResult, error: Exception):
        result.final_price = None
        result.add_error(f"Error calculating price: {error}")
        result.add_trace("Error", "Price calculation aborted", type(error).__name__)

    def _resolve(
        self,
        product_id: str,
        customer_id: Optional[str],
        profile: Optional[CustomerPricingProfile],
        snapshot: PricingSnapshot,
        quantity: int,
        now: datetime,
        result: PriceCalculationResult
    ):
        """Resolve one product against an already loaded snapshot."""
        settings = snapshot.settings
        result.currency = settings.currency

        if profile is not None:
            result.add_trace("Customer Profile", "Found pricing profile for customer", profile.customer_id)
        elif customer_id:
            result.add_trace("Customer Profile", f"No pricing profile for customer {customer_id}, using defaults")

        # Determine the target level
        target_level_id = None
        if profile is not None and profile.default_price_level_id:
            target_level_id = profile.default_price_level_id
            result.add_trace("Target Level", "Using customer level", target_level_id)
        elif settings.default_price_level_id:
            target_level_id = settings.default_price_level_id
            result.add_trace("Target Level", "Using global default level", target_level_id)
        else:
            result.add_trace("Target Level", "No target level configured")

        target_level = snapshot.find_level(target_level_id)

        base_price = self._apply_precedence(product_id, target_level_id, target_level, profile, snapshot,
                                            quantity, now, result)

        if base_price is None and settings.allow_fallback_to_other_levels:
            base_price = self._apply_fallback(product_id, target_level_id, snapshot, result)

        if base_price is None:
            result.add_trace("No Price", f"No price found for product {product_id}")
            return

        result.base_price = base_price
        final_price = apply_adjustments(base_price, product_id, quantity, settings, profile, now, result)
        result.final_price = final_price
        result.add_trace("Final Price", "Calculation complete", fmt(final_price))

    def _apply_precedence(
        self,
        product_id: str,
        target_level_id: Optional[str],
        target_level: Optional[PriceLevel],
        profile: Optional[CustomerPricingProfile],
        snapshot: PricingSnapshot,
        quantity: int,
        now: datetime,
        result: PriceCalculationResult
    ) -> Optional[float]:
        """Walk the precedence order; first kind yielding a price wins."""
        for precedence in snapshot.settings.price_precedence_order:
            if precedence == CUSTOM_RULE:
                price = self._try_custom_rules(product_id, profile, snapshot, quantity, now, result)
            elif precedence == LEVEL_EXPLICIT:
                price = self._try_explicit(product_id, target_level_id, snapshot, result)
            elif precedence == LEVEL_DERIVED:
                price = self._try_derived(product_id, target_level, snapshot, result)
            else:
                result.add_trace("Precedence", f"Unknown precedence option {precedence!r} skipped")
                continue

            if price is not None:
                result.source_precedence = precedence
                return price

        return None

    def _try_custom_rules(
        self,
        product_id: str,
        profile: Optional[CustomerPricingProfile],
        snapshot: PricingSnapshot,
        quantity: int,
        now: datetime,
        result: PriceCalculationResult
    ) -> Optional[float]:
        if profile is None or not profile.allow_custom_rules or not profile.custom_rules:
            return None

        match = find_custom_rule_price(profile.custom_rules, product_id, snapshot.levels, snapshot.matrix,
                                       now, quantity)
        if match is None:
            result.add_trace("Custom Rule", "No applicable custom rule")
            return None

        rule, price = match
        if rule.use_fixed_price and rule.fixed_price is not None:
            result.add_trace("Custom Rule", f"Rule {rule.id} fixed price", fmt(price))
        else:
            result.add_trace(
                "Custom Rule",
                f"Rule {rule.id} {fmt(rule.percent_of_level)}% of level {rule.price_level_id_for_percent}",
                fmt(price),
            )
        return price

    def _try_explicit(
        self,
        product_id: str,
        target_level_id: Optional[str],
        snapshot: PricingSnapshot,
        result: PriceCalculationResult
    ) -> Optional[float]:
        if not target_level_id:
            return None

        price = explicit_price(product_id, target_level_id, snapshot.matrix)
        if price is None:
            result.add_trace("Explicit Price", f"No explicit price at level {target_level_id}")
            return None

        self._set_source_level(snapshot, target_level_id, result)
        result.add_trace("Explicit Price", f"Explicit price at level {target_level_id}", fmt(price))
        return price

    def _try_derived(
        self,
        product_id: str,
        target_level: Optional[PriceLevel],
        snapshot: PricingSnapshot,
        result: PriceCalculationResult
    ) -> Optional[float]:
        # Only meaningful for derived target levels
        if target_level is None or target_level.is_base_level:
            return None

        price = derived_price(product_id, target_level, snapshot.levels, snapshot.matrix, set())
        if price is None:
            result.add_trace("Derived Price", f"Level {target_level.id} could not be derived")
            return None

        self._set_source_level(snapshot, target_level.id, result)
        result.add_trace(
            "Derived Price",
            f"Level {target_level.id} derived from {target_level.base_level_id} "
            f"({target_level.adjustment_type} {fmt(target_level.adjustment_value)})",
            fmt(price),
        )
        return price

    def _apply_fallback(
        self,
        product_id: str,
        target_level_id: Optional[str],
        snapshot: PricingSnapshot,
        result: PriceCalculationResult
    ) -> Optional[float]:
        fallback_level_id = snapshot.settings.fallback_level_id
        if not fallback_level_id:
            base_levels = sorted(
                (l for l in snapshot.levels if l.is_base_level and l.is_active),
                key=lambda l: l.sort_order
            )
            fallback_level_id = base_levels[0].id if base_levels else None

        if not fallback_level_id or fallback_level_id == target_level_id:
            return None

        price = price_for_level(product_id, fallback_level_id, snapshot.levels, snapshot.matrix)
        if price is None:
            result.add_trace("Fallback", f"No price at fallback level {fallback_level_id}")
            return None

        result.fallback_used = True
        self._set_source_level(snapshot, fallback_level_id, result)
        result.add_trace("Fallback", f"Using fallback level {fallback_level_id}", fmt(price))
        return price

    @staticmethod
    def _set_source_level(snapshot: PricingSnapshot, level_id: Optional[str], result: PriceCalculationResult):
        level = snapshot.find_level(level_id)
        result.source_level_id = level_id
        result.source_level_name = level.name if level else None


# Default engine instance
_engine: Optional[PricingEngine] = None


def get_engine() -> PricingEngine:
    """Get the process-wide engine built from the global settings."""
    global _engine
    if _engine is None:
        _engine = PricingEngine()
    return _engine


def get_effective_price_for_customer(
    product_id: str,
    customer_id: Optional[str] = None,
    quantity: int = 1
) -> PriceCalculationResult:
    return get_engine().get_effective_price_for_customer(product_id, customer_id, quantity)


def get_batch_prices_for_customer(
    product_ids: Iterable[str],
    customer_id: Optional[str] = None,
    quantity: int = 1
) -> dict[str, PriceCalculationResult]:
    return get_engine().get_batch_prices_for_customer(product_ids, customer_id, quantity)


def get_all_prices_for_product(product_id: str) -> list[LevelPrice]:
    return get_engine().get_all_prices_for_product(product_id)


def invalidate_pricing_cache():
    get_engine().invalidate_pricing_cache()
