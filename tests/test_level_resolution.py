"""
Level resolution tests: explicit lookup, derivation and cycle safety.
"""
from parts_pricing.engine.level_resolver import (
    derived_price,
    explicit_price,
    find_level_cycle,
    price_for_level,
)
from parts_pricing.engine.models import PriceLevel, PriceMatrix, ProductPriceEntry, PERCENT, FIXED


def test_explicit_price_lookup(levels, matrix):
    assert explicit_price('P1', 'BASE', matrix) == 100.0
    assert price_for_level('P1', 'SECOND', levels, matrix) == 80.0


def test_derived_percent(levels, matrix):
    level = next(l for l in levels if l.id == 'PLUS10')
    assert derived_price('P1', level, levels, matrix) == 110.0


def test_derived_fixed(levels, matrix):
    level = next(l for l in levels if l.id == 'FIX10')
    assert derived_price('P1', level, levels, matrix) == 110.0


def test_derived_chain_resolves_through_derived_base(levels, matrix):
    levels.append(PriceLevel(id='CHAIN', name='Chain', is_base_level=False, base_level_id='PLUS10',
                             adjustment_type=FIXED, adjustment_value=5))
    assert price_for_level('P1', 'CHAIN', levels, matrix) == 115.0


def test_explicit_entry_wins_over_derivation(levels):
    matrix = PriceMatrix([ProductPriceEntry('P1', 'BASE', 100.0), ProductPriceEntry('P1', 'PLUS10', 99.0)])
    assert price_for_level('P1', 'PLUS10', levels, matrix) == 99.0


def test_unknown_and_inactive_levels_have_no_price(levels, matrix):
    assert price_for_level('P1', 'NOPE', levels, matrix) is None
    assert price_for_level('P1', 'INACTIVE', levels, matrix) is None


def test_missing_base_price_yields_none(levels, matrix):
    assert price_for_level('UNKNOWN-PRODUCT', 'PLUS10', levels, matrix) is None


def test_cycle_returns_none():
    levels = [
        PriceLevel(id='A', name='A', is_base_level=False, base_level_id='B',
                   adjustment_type=PERCENT, adjustment_value=10),
        PriceLevel(id='B', name='B', is_base_level=False, base_level_id='A',
                   adjustment_type=FIXED, adjustment_value=5),
    ]
    matrix = PriceMatrix([])

    assert price_for_level('P1', 'A', levels, matrix) is None
    assert price_for_level('P1', 'B', levels, matrix) is None
    assert derived_price('P1', levels[0], levels, matrix, set()) is None


def test_self_referencing_level_returns_none():
    level = PriceLevel(id='SELF', name='Self', is_base_level=False, base_level_id='SELF',
                       adjustment_type=PERCENT, adjustment_value=10)
    assert price_for_level('P1', 'SELF', [level], PriceMatrix([])) is None


def test_duplicate_matrix_entries_last_wins():
    matrix = PriceMatrix([
        ProductPriceEntry('P1', 'BASE', 10.0),
        ProductPriceEntry('P1', 'BASE', 12.0),
    ])
    assert len(matrix) == 1
    assert matrix.get('P1', 'BASE') == 12.0


def test_find_level_cycle():
    levels = [
        PriceLevel(id='A', name='A', is_base_level=False, base_level_id='B'),
        PriceLevel(id='B', name='B', is_base_level=False, base_level_id='A'),
        PriceLevel(id='C', name='C', is_base_level=False, base_level_id='A'),
    ]
    assert find_level_cycle(levels[0], levels) == ['A', 'B', 'A']
    assert find_level_cycle(levels[2], levels) == ['A', 'B', 'A']


def test_find_level_cycle_none_for_healthy_chain(levels):
    plus10 = next(l for l in levels if l.id == 'PLUS10')
    assert find_level_cycle(plus10, levels) is None
