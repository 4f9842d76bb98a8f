"""
Data models for the price resolution engine.

Uses dataclasses for structured, type-safe data representation. Every
configuration entity has a ``from_dict`` constructor accepting the camelCase
keys written by the admin settings surface as well as snake_case keys.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


# Precedence kinds
CUSTOM_RULE = 'CUSTOM_RULE'
LEVEL_EXPLICIT = 'LEVEL_EXPLICIT'
LEVEL_DERIVED = 'LEVEL_DERIVED'
PRECEDENCE_OPTIONS = (CUSTOM_RULE, LEVEL_EXPLICIT, LEVEL_DERIVED)

# Adjustment / discount types
PERCENT = 'PERCENT'
FIXED = 'FIXED'
ADJUSTMENT_TYPES = (PERCENT, FIXED)

# Rounding modes
ROUNDING_MODES = ('ROUND', 'CEIL', 'FLOOR', 'NONE')


class PricingDataError(ValueError):
    """Raised when source data cannot be turned into pricing entities."""


def _get(data: dict, camel: str, snake: str, default=None):
    """Read a key in either camelCase or snake_case form."""
    if camel in data and data[camel] is not None:
        return data[camel]
    if snake in data and data[snake] is not None:
        return data[snake]
    return default


def parse_bool(value, default: bool = False) -> bool:
    """Parse a boolean from JSON or CSV values."""
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', '1', 'yes', 'on')


def parse_optional_float(value) -> Optional[float]:
    """Parse optional float (empty = None)."""
    if value is None or (isinstance(value, str) and value.strip() == ''):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise PricingDataError(f"Expected a number, got {value!r}")


def parse_optional_int(value) -> Optional[int]:
    """Parse optional integer (empty = None)."""
    number = parse_optional_float(value)
    return None if number is None else int(number)


def parse_optional_str(value) -> Optional[str]:
    """Parse optional string (empty = None)."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp.

    Naive timestamps are taken as UTC so they compare with the engine clock.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise PricingDataError(f"Invalid timestamp {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _id_list(value) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(',') if v.strip()]
    return [str(v) for v in value]


@dataclass
class PriceLevel:
    """A named pricing tier, either a base level or derived from another."""
    id: str
    name: str
    is_base_level: bool = True
    sort_order: int = 0
    is_active: bool = True
    code: Optional[str] = None
    base_level_id: Optional[str] = None
    adjustment_type: Optional[str] = None  # PERCENT or FIXED
    adjustment_value: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'PriceLevel':
        level_id = parse_optional_str(_get(data, 'id', 'id'))
        if not level_id:
            raise PricingDataError(f"Price level without id: {data!r}")
        adjustment_type = parse_optional_str(_get(data, 'adjustmentType', 'adjustment_type'))
        return cls(
            id=level_id,
            name=parse_optional_str(data.get('name')) or level_id,
            code=parse_optional_str(data.get('code')),
            is_base_level=parse_bool(_get(data, 'isBaseLevel', 'is_base_level'), default=True),
            sort_order=parse_optional_int(_get(data, 'sortOrder', 'sort_order')) or 0,
            is_active=parse_bool(_get(data, 'isActive', 'is_active'), default=True),
            base_level_id=parse_optional_str(_get(data, 'baseLevelId', 'base_level_id')),
            adjustment_type=adjustment_type.upper() if adjustment_type else None,
            adjustment_value=parse_optional_float(_get(data, 'adjustmentValue', 'adjustment_value')),
        )


@dataclass
class ProductPriceEntry:
    """An explicit price for one product at one base level."""
    product_id: str
    price_level_id: str
    price: float

    @classmethod
    def from_dict(cls, data: dict) -> 'ProductPriceEntry':
        product_id = parse_optional_str(_get(data, 'productId', 'product_id'))
        level_id = parse_optional_str(_get(data, 'priceLevelId', 'price_level_id'))
        price = parse_optional_float(data.get('price'))
        if not product_id or not level_id or price is None:
            raise PricingDataError(f"Incomplete price matrix entry: {data!r}")
        return cls(product_id=product_id, price_level_id=level_id, price=price)


class PriceMatrix:
    """
    Keyed (product_id, price_level_id) → price lookup.

    Built from the raw entry list; duplicate keys resolve to the last entry.
    """

    def __init__(self, entries: Optional[list[ProductPriceEntry]] = None):
        self._prices: dict[tuple[str, str], float] = {}
        for entry in entries or []:
            self._prices[(entry.product_id, entry.price_level_id)] = entry.price

    def get(self, product_id: str, level_id: str) -> Optional[float]:
        return self._prices.get((product_id, level_id))

    def __len__(self) -> int:
        return len(self._prices)

    def __contains__(self, key) -> bool:
        return key in self._prices


@dataclass
class CustomerCustomPriceRule:
    """A customer-specific price override (fixed or percent of a level)."""
    id: str = ''
    product_id: Optional[str] = None
    use_fixed_price: bool = False
    fixed_price: Optional[float] = None
    use_percent_of_level: bool = False
    percent_of_level: Optional[float] = None
    price_level_id_for_percent: Optional[str] = None
    min_qty: Optional[int] = None
    max_qty: Optional[int] = None
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'CustomerCustomPriceRule':
        return cls(
            id=parse_optional_str(data.get('id')) or '',
            product_id=parse_optional_str(_get(data, 'productId', 'product_id')),
            use_fixed_price=parse_bool(_get(data, 'useFixedPrice', 'use_fixed_price')),
            fixed_price=parse_optional_float(_get(data, 'fixedPrice', 'fixed_price')),
            use_percent_of_level=parse_bool(_get(data, 'usePercentOfLevel', 'use_percent_of_level')),
            percent_of_level=parse_optional_float(_get(data, 'percentOfLevel', 'percent_of_level')),
            price_level_id_for_percent=parse_optional_str(
                _get(data, 'priceLevelIdForPercent', 'price_level_id_for_percent')
            ),
            min_qty=parse_optional_int(_get(data, 'minQty', 'min_qty')),
            max_qty=parse_optional_int(_get(data, 'maxQty', 'max_qty')),
            valid_from=parse_timestamp(_get(data, 'validFrom', 'valid_from')),
            valid_to=parse_timestamp(_get(data, 'validTo', 'valid_to')),
            notes=parse_optional_str(data.get('notes')),
        )


@dataclass
class CustomerPricingProfile:
    """Per-customer pricing configuration. Read-only during resolution."""
    customer_id: str
    default_price_level_id: Optional[str] = None
    extra_markup_percent: float = 0.0
    extra_discount_percent: float = 0.0
    price_floor: Optional[float] = None
    price_ceiling: Optional[float] = None
    allow_custom_rules: bool = False
    custom_rules: list[CustomerCustomPriceRule] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> 'CustomerPricingProfile':
        customer_id = parse_optional_str(_get(data, 'customerId', 'customer_id'))
        if not customer_id:
            raise PricingDataError(f"Customer pricing profile without customerId: {data!r}")
        return cls(
            customer_id=customer_id,
            default_price_level_id=parse_optional_str(
                _get(data, 'defaultPriceLevelId', 'default_price_level_id')
            ),
            extra_markup_percent=parse_optional_float(
                _get(data, 'extraMarkupPercent', 'extra_markup_percent')
            ) or 0.0,
            extra_discount_percent=parse_optional_float(
                _get(data, 'extraDiscountPercent', 'extra_discount_percent')
            ) or 0.0,
            price_floor=parse_optional_float(_get(data, 'priceFloor', 'price_floor')),
            price_ceiling=parse_optional_float(_get(data, 'priceCeiling', 'price_ceiling')),
            allow_custom_rules=parse_bool(_get(data, 'allowCustomRules', 'allow_custom_rules')),
            custom_rules=[
                CustomerCustomPriceRule.from_dict(r)
                for r in _get(data, 'customRules', 'custom_rules', [])
            ],
        )


@dataclass
class VolumeDiscountRule:
    """A quantity-triggered discount."""
    min_qty: int
    discount_type: str
    discount_value: float
    id: str = ''
    max_qty: Optional[int] = None
    applies_to_all_products: bool = True
    product_ids: list[str] = field(default_factory=list)
    is_active: bool = True

    def applies_to_product(self, product_id: str) -> bool:
        return self.applies_to_all_products or product_id in self.product_ids

    @classmethod
    def from_dict(cls, data: dict) -> 'VolumeDiscountRule':
        return cls(
            id=parse_optional_str(data.get('id')) or '',
            min_qty=parse_optional_int(_get(data, 'minQty', 'min_qty')) or 0,
            max_qty=parse_optional_int(_get(data, 'maxQty', 'max_qty')),
            discount_type=(parse_optional_str(_get(data, 'discountType', 'discount_type')) or PERCENT).upper(),
            discount_value=parse_optional_float(_get(data, 'discountValue', 'discount_value')) or 0.0,
            applies_to_all_products=parse_bool(
                _get(data, 'appliesToAllProducts', 'applies_to_all_products'), default=True
            ),
            product_ids=_id_list(_get(data, 'productIds', 'product_ids')),
            is_active=parse_bool(_get(data, 'isActive', 'is_active'), default=True),
        )


@dataclass
class TimePromotion:
    """A date-windowed discount."""
    name: str
    starts_at: datetime
    ends_at: datetime
    discount_type: str
    discount_value: float
    id: str = ''
    applies_to_all_products: bool = True
    product_ids: list[str] = field(default_factory=list)
    price_level_ids: list[str] = field(default_factory=list)
    is_active: bool = True

    def applies_to_product(self, product_id: str) -> bool:
        return self.applies_to_all_products or product_id in self.product_ids

    def is_running(self, now: datetime) -> bool:
        return self.starts_at <= now <= self.ends_at

    @classmethod
    def from_dict(cls, data: dict) -> 'TimePromotion':
        starts_at = parse_timestamp(_get(data, 'startsAt', 'starts_at'))
        ends_at = parse_timestamp(_get(data, 'endsAt', 'ends_at'))
        if starts_at is None or ends_at is None:
            raise PricingDataError(f"Time promotion needs startsAt and endsAt: {data!r}")
        promo_id = parse_optional_str(data.get('id')) or ''
        return cls(
            id=promo_id,
            name=parse_optional_str(data.get('name')) or promo_id,
            starts_at=starts_at,
            ends_at=ends_at,
            discount_type=(parse_optional_str(_get(data, 'discountType', 'discount_type')) or PERCENT).upper(),
            discount_value=parse_optional_float(_get(data, 'discountValue', 'discount_value')) or 0.0,
            applies_to_all_products=parse_bool(
                _get(data, 'appliesToAllProducts', 'applies_to_all_products'), default=True
            ),
            product_ids=_id_list(_get(data, 'productIds', 'product_ids')),
            price_level_ids=_id_list(_get(data, 'priceLevelIds', 'price_level_ids')),
            is_active=parse_bool(_get(data, 'isActive', 'is_active'), default=True),
        )


@dataclass
class GlobalPricingSettings:
    """Master pricing configuration owned by the admin settings surface."""
    price_precedence_order: list[str] = field(
        default_factory=lambda: [CUSTOM_RULE, LEVEL_EXPLICIT, LEVEL_DERIVED]
    )
    default_price_level_id: Optional[str] = None
    allow_fallback_to_other_levels: bool = False
    fallback_level_id: Optional[str] = None
    allow_negative_discounts: bool = False
    min_price_floor: Optional[float] = None
    max_price_ceiling: Optional[float] = None
    rounding_mode: str = 'NONE'
    rounding_decimals: int = 2
    enable_volume_discounts: bool = False
    volume_discount_rules: list[VolumeDiscountRule] = field(default_factory=list)
    enable_time_promotions: bool = False
    time_promotions: list[TimePromotion] = field(default_factory=list)
    currency: str = 'SAR'

    @classmethod
    def from_dict(cls, data: dict) -> 'GlobalPricingSettings':
        order = _get(data, 'pricePrecedenceOrder', 'price_precedence_order')
        rounding_decimals = parse_optional_int(_get(data, 'roundingDecimals', 'rounding_decimals'))
        return cls(
            price_precedence_order=[str(p).strip().upper() for p in order]
            if order else [CUSTOM_RULE, LEVEL_EXPLICIT, LEVEL_DERIVED],
            default_price_level_id=parse_optional_str(
                _get(data, 'defaultPriceLevelId', 'default_price_level_id')
            ),
            allow_fallback_to_other_levels=parse_bool(
                _get(data, 'allowFallbackToOtherLevels', 'allow_fallback_to_other_levels')
            ),
            fallback_level_id=parse_optional_str(_get(data, 'fallbackLevelId', 'fallback_level_id')),
            allow_negative_discounts=parse_bool(_get(data, 'allowNegativeDiscounts', 'allow_negative_discounts')),
            min_price_floor=parse_optional_float(_get(data, 'minPriceFloor', 'min_price_floor')),
            max_price_ceiling=parse_optional_float(_get(data, 'maxPriceCeiling', 'max_price_ceiling')),
            rounding_mode=(parse_optional_str(_get(data, 'roundingMode', 'rounding_mode')) or 'NONE').upper(),
            rounding_decimals=2 if rounding_decimals is None else rounding_decimals,
            enable_volume_discounts=parse_bool(_get(data, 'enableVolumeDiscounts', 'enable_volume_discounts')),
            volume_discount_rules=[
                VolumeDiscountRule.from_dict(r)
                for r in _get(data, 'volumeDiscountRules', 'volume_discount_rules', [])
            ],
            enable_time_promotions=parse_bool(_get(data, 'enableTimePromotions', 'enable_time_promotions')),
            time_promotions=[
                TimePromotion.from_dict(p)
                for p in _get(data, 'timePromotions', 'time_promotions', [])
            ],
            currency=parse_optional_str(data.get('currency')) or 'SAR',
        )


@dataclass
class PricingSnapshot:
    """One consistent load of the three shared pricing datasets."""
    settings: GlobalPricingSettings
    levels: list[PriceLevel]
    matrix: PriceMatrix

    def find_level(self, level_id: Optional[str]) -> Optional[PriceLevel]:
        return find_level(self.levels, level_id)


def find_level(levels: list[PriceLevel], level_id: Optional[str]) -> Optional[PriceLevel]:
    """Return the level with the given id, or None."""
    if not level_id:
        return None
    for level in levels:
        if level.id == level_id:
            return level
    return None


@dataclass
class TraceStep:
    """A single step in the price resolution trace."""
    step: str
    description: str
    value: Optional[str] = None

    def __str__(self) -> str:
        if self.value:
            return f"{self.step}: {self.description} = {self.value}"
        return f"{self.step}: {self.description}"


@dataclass
class LevelPrice:
    """Price of one product at one level, for the admin level listing."""
    level_id: str
    level_name: str
    price: Optional[float]


@dataclass
class PriceCalculationResult:
    """Complete, explainable result of one price resolution."""
    product_id: str
    customer_id: Optional[str] = None
    quantity: int = 1
    final_price: Optional[float] = None
    base_price: Optional[float] = None
    source_precedence: Optional[str] = None
    source_level_id: Optional[str] = None
    source_level_name: Optional[str] = None
    fallback_used: bool = False
    rounding_applied: bool = False
    applied_markup: Optional[float] = None
    applied_discount: Optional[float] = None
    applied_volume_discount: Optional[float] = None
    applied_promotion: Optional[str] = None
    currency: Optional[str] = None
    trace: list[TraceStep] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the calculation trace."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def add_error(self, error: str):
        self.errors.append(error)

    @property
    def calculation_steps(self) -> list[str]:
        """The trace rendered as ordered, human-readable strings."""
        return [str(t) for t in self.trace]

    def get_trace_text(self) -> str:
        """Get human-readable trace as formatted text."""
        return "\n".join(f"→ {line}" for line in self.calculation_steps)
