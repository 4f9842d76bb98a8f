"""
Data loader cache and file source tests.
"""
import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from parts_pricing.data.loader import PricingDataLoader
from parts_pricing.data.sources import FilePricingSource, InMemoryPricingSource
from parts_pricing.engine.pricing_engine import PricingEngine
from parts_pricing.engine.models import (
    GlobalPricingSettings,
    PricingDataError,
    ProductPriceEntry,
    CUSTOM_RULE,
    LEVEL_DERIVED,
)

from conftest import CountingSource, make_entries, make_levels

SAMPLE_DATA_DIR = Path(__file__).resolve().parent.parent / 'data'


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def source():
    return CountingSource(settings=GlobalPricingSettings(), levels=make_levels(), matrix=make_entries())


def test_cache_hit_within_ttl(source):
    clock = FakeClock()
    loader = PricingDataLoader(source, ttl_seconds=30, clock=clock)

    first = loader.load()
    clock.now += 29
    second = loader.load()

    assert first is second
    assert source.calls == {'settings': 1, 'levels': 1, 'matrix': 1, 'profile': 0}


def test_cache_refetch_after_ttl(source):
    clock = FakeClock()
    loader = PricingDataLoader(source, ttl_seconds=30, clock=clock)

    first = loader.load()
    clock.now += 30
    second = loader.load()

    assert first is not second
    assert source.calls['levels'] == 2


def test_invalidate_forces_refetch(source):
    loader = PricingDataLoader(source, ttl_seconds=30, clock=FakeClock())

    loader.load()
    loader.invalidate()
    assert not loader.is_cached
    loader.load()

    assert source.calls['matrix'] == 2


def test_fetch_errors_propagate():
    source = InMemoryPricingSource()

    def broken():
        raise ConnectionError("down")
    source.fetch_global_pricing_settings = broken
    loader = PricingDataLoader(source)

    with pytest.raises(ConnectionError):
        loader.load()
    assert not loader.is_cached


def test_snapshot_matrix_is_keyed():
    source = InMemoryPricingSource(matrix=[
        ProductPriceEntry('P1', 'BASE', 1.0),
        ProductPriceEntry('P1', 'BASE', 2.0),
    ])
    snapshot = PricingDataLoader(source).load()
    assert snapshot.matrix.get('P1', 'BASE') == 2.0


def _write_data_dir(path: Path):
    (path / 'price_levels.csv').write_text(
        "id,name,isBaseLevel,sortOrder,isActive,baseLevelId,adjustmentType,adjustmentValue\n"
        "BASE,Base,true,1,true,,,\n"
        "UP,Up,false,2,true,BASE,percent,20\n",
        encoding='utf-8',
    )
    (path / 'price_matrix.csv').write_text(
        "productId,priceLevelId,price\n"
        " P1 ,BASE,50\n",
        encoding='utf-8',
    )
    (path / 'pricing_settings.json').write_text(json.dumps({
        "defaultPriceLevelId": "BASE",
        "pricePrecedenceOrder": ["custom_rule", "LEVEL_DERIVED"],
        "roundingMode": "round",
        "roundingDecimals": 1,
    }), encoding='utf-8')
    (path / 'customer_profiles.json').write_text(json.dumps([
        {"customerId": "C1", "defaultPriceLevelId": "UP", "extraMarkupPercent": "5"},
    ]), encoding='utf-8')


def test_file_source_parses_data_dir(tmp_path):
    _write_data_dir(tmp_path)
    source = FilePricingSource(tmp_path)

    levels = source.fetch_price_levels()
    assert [l.id for l in levels] == ['BASE', 'UP']
    assert levels[1].is_base_level is False
    assert levels[1].adjustment_type == 'PERCENT'
    assert levels[1].adjustment_value == 20.0

    entries = source.fetch_product_price_matrix()
    assert entries[0].product_id == 'P1'
    assert entries[0].price == 50.0

    settings = source.fetch_global_pricing_settings()
    assert settings.price_precedence_order == [CUSTOM_RULE, LEVEL_DERIVED]
    assert settings.rounding_mode == 'ROUND'
    assert settings.rounding_decimals == 1

    profile = source.fetch_customer_pricing_profile('C1')
    assert profile.default_price_level_id == 'UP'
    assert profile.extra_markup_percent == 5.0
    assert source.fetch_customer_pricing_profile('NOBODY') is None


def test_file_source_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        FilePricingSource(tmp_path).fetch_price_levels()


def test_file_source_bad_price(tmp_path):
    _write_data_dir(tmp_path)
    (tmp_path / 'price_matrix.csv').write_text("productId,priceLevelId,price\nP1,BASE,abc\n", encoding='utf-8')

    with pytest.raises(PricingDataError):
        FilePricingSource(tmp_path).fetch_product_price_matrix()


def test_engine_over_file_source(tmp_path):
    _write_data_dir(tmp_path)
    engine = PricingEngine(source=FilePricingSource(tmp_path))

    result = engine.get_effective_price_for_customer('P1', 'C1')

    # 50 derived +20% = 60, +5% markup = 63
    assert result.final_price == 63.0
    assert result.source_level_id == 'UP'


def test_bad_source_data_is_reported_by_engine(tmp_path):
    _write_data_dir(tmp_path)
    (tmp_path / 'pricing_settings.json').write_text("{not json", encoding='utf-8')
    engine = PricingEngine(source=FilePricingSource(tmp_path))

    result = engine.get_effective_price_for_customer('P1')

    assert result.final_price is None
    assert result.errors


def test_sample_data_directory():
    engine = PricingEngine(
        source=FilePricingSource(SAMPLE_DATA_DIR),
        clock=lambda: datetime(2026, 10, 1, tzinfo=timezone.utc),
    )

    # Custom fixed-price rule for the workshop customer
    assert engine.get_effective_price_for_customer('OIL-FLT-200', 'CUST-WS-01').final_price == 25.0

    # Workshop level derives from wholesale 100 +10%
    result = engine.get_effective_price_for_customer('BRK-PAD-100', 'CUST-WS-01')
    assert result.final_price == 110.0

    # Summer promotion applies when simulated inside its window
    summer = engine.simulate_price_calculation('BRK-PAD-100', 'CUST-WS-01', at=datetime(2026, 7, 1))
    assert summer.final_price == 99.0
    assert summer.applied_promotion == 'Summer Brakes'
