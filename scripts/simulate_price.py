#!/usr/bin/env python
"""
Simulate a price calculation against the data directory and print the trace.

Usage:
    python scripts/simulate_price.py PRODUCT_ID [CUSTOMER_ID] [QUANTITY]
"""
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from parts_pricing.config.settings import configure_logging
from parts_pricing.engine.pricing_engine import PricingEngine


def simulate(argv: list[str]):
    if not argv:
        print(__doc__)
        sys.exit(1)

    product_id = argv[0]
    customer_id = argv[1] if len(argv) > 1 and argv[1] != '-' else None
    quantity = int(argv[2]) if len(argv) > 2 else 1

    configure_logging()
    engine = PricingEngine()

    print(f"--- Levels for {product_id} ---")
    for level in engine.get_all_prices_for_product(product_id):
        price = "n/a" if level.price is None else f"{level.price:.2f}"
        print(f"{level.level_id:<12} {level.level_name:<20} {price}")

    print(f"\n--- Price for customer {customer_id or '(none)'} x{quantity} ---")
    result = engine.simulate_price_calculation(product_id, customer_id, quantity)
    print(result.get_trace_text())
    for error in result.errors:
        print(f"ERROR: {error}")

    print("\n--- Configuration check ---")
    validation = engine.validate_configuration()
    print("valid" if validation.valid else "INVALID")
    for error in validation.errors:
        print(f"  error: {error}")
    for warning in validation.warnings:
        print(f"  warning: {warning}")


if __name__ == "__main__":
    simulate(sys.argv[1:])
