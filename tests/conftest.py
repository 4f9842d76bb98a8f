import os
import sys
from datetime import datetime, timezone

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from parts_pricing.data.sources import InMemoryPricingSource
from parts_pricing.engine.pricing_engine import PricingEngine
from parts_pricing.engine.models import (
    GlobalPricingSettings,
    PriceLevel,
    PriceMatrix,
    ProductPriceEntry,
    PERCENT,
    FIXED,
)

FIXED_NOW = datetime(2026, 7, 1, 12, 0, tzinfo=timezone.utc)


def make_levels():
    return [
        PriceLevel(id='BASE', name='Base', is_base_level=True, sort_order=1),
        PriceLevel(id='SECOND', name='Second', is_base_level=True, sort_order=2),
        PriceLevel(id='PLUS10', name='Plus 10%', is_base_level=False, sort_order=3,
                   base_level_id='BASE', adjustment_type=PERCENT, adjustment_value=10),
        PriceLevel(id='FIX10', name='Plus 10 fixed', is_base_level=False, sort_order=4,
                   base_level_id='BASE', adjustment_type=FIXED, adjustment_value=10),
        PriceLevel(id='INACTIVE', name='Inactive', is_base_level=True, sort_order=5, is_active=False),
    ]


def make_entries():
    return [
        ProductPriceEntry('P1', 'BASE', 100.0),
        ProductPriceEntry('P1', 'SECOND', 80.0),
        ProductPriceEntry('P1', 'INACTIVE', 60.0),
        ProductPriceEntry('P2', 'BASE', 50.0),
    ]


class CountingSource(InMemoryPricingSource):
    """In-memory source that counts fetches."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = {'settings': 0, 'levels': 0, 'matrix': 0, 'profile': 0}

    def fetch_global_pricing_settings(self):
        self.calls['settings'] += 1
        return super().fetch_global_pricing_settings()

    def fetch_price_levels(self):
        self.calls['levels'] += 1
        return super().fetch_price_levels()

    def fetch_product_price_matrix(self):
        self.calls['matrix'] += 1
        return super().fetch_product_price_matrix()

    def fetch_customer_pricing_profile(self, customer_id):
        self.calls['profile'] += 1
        return super().fetch_customer_pricing_profile(customer_id)


@pytest.fixture
def levels():
    return make_levels()


@pytest.fixture
def matrix():
    return PriceMatrix(make_entries())


@pytest.fixture
def make_engine():
    """Build an engine over in-memory data with a fixed clock."""
    def _make(settings=None, levels=None, entries=None, profiles=None, now=FIXED_NOW):
        source = CountingSource(
            settings=settings or GlobalPricingSettings(default_price_level_id='BASE'),
            levels=make_levels() if levels is None else levels,
            matrix=make_entries() if entries is None else entries,
            profiles=profiles or [],
        )
        return PricingEngine(source=source, clock=lambda: now)
    return _make
