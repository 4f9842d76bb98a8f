"""
Pricing data sources.

A data source supplies the four datasets the engine consumes. The settings
surface owns and writes this data; the engine only reads it.
"""
import json
import logging
from pathlib import Path
from typing import Optional, Protocol

import pandas as pd

from ..engine.models import (
    CustomerPricingProfile,
    GlobalPricingSettings,
    PriceLevel,
    PricingDataError,
    ProductPriceEntry,
)

logger = logging.getLogger(__name__)


class PricingDataSource(Protocol):
    """Contract implemented by the external data-access collaborator."""

    def fetch_global_pricing_settings(self) -> GlobalPricingSettings: ...

    def fetch_price_levels(self) -> list[PriceLevel]: ...

    def fetch_product_price_matrix(self) -> list[ProductPriceEntry]: ...

    def fetch_customer_pricing_profile(self, customer_id: str) -> Optional[CustomerPricingProfile]: ...


class InMemoryPricingSource:
    """Data source backed by Python objects. Useful for embedding and tests."""

    def __init__(
        self,
        settings: Optional[GlobalPricingSettings] = None,
        levels: Optional[list[PriceLevel]] = None,
        matrix: Optional[list[ProductPriceEntry]] = None,
        profiles: Optional[list[CustomerPricingProfile]] = None
    ):
        self.settings = settings or GlobalPricingSettings()
        self.levels = list(levels or [])
        self.matrix = list(matrix or [])
        self.profiles = {p.customer_id: p for p in profiles or []}

    def fetch_global_pricing_settings(self) -> GlobalPricingSettings:
        return self.settings

    def fetch_price_levels(self) -> list[PriceLevel]:
        return list(self.levels)

    def fetch_product_price_matrix(self) -> list[ProductPriceEntry]:
        return list(self.matrix)

    def fetch_customer_pricing_profile(self, customer_id: str) -> Optional[CustomerPricingProfile]:
        return self.profiles.get(customer_id)


class FilePricingSource:
    """
    Data source reading a pricing data directory.

    Layout:
        pricing_settings.json   global settings (camelCase keys)
        price_levels.csv        one row per level
        price_matrix.csv        productId, priceLevelId, price
        customer_profiles.json  list of customer profiles
    """

    SETTINGS_FILE = 'pricing_settings.json'
    LEVELS_FILE = 'price_levels.csv'
    MATRIX_FILE = 'price_matrix.csv'
    PROFILES_FILE = 'customer_profiles.json'

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def _load_csv(self, filename: str) -> pd.DataFrame:
        path = self.data_dir / filename
        if not path.exists():
            raise FileNotFoundError(f"{filename} not found at {path}")
        df = pd.read_csv(path, dtype=str).fillna('')
        # Strip all strings and headers
        df.columns = [c.strip() for c in df.columns]
        for col in df.columns:
            df[col] = df[col].astype(str).str.strip()
        return df

    def _load_json(self, filename: str, required: bool = True):
        path = self.data_dir / filename
        if not path.exists():
            if required:
                raise FileNotFoundError(f"{filename} not found at {path}")
            return None
        with open(path, 'r', encoding='utf-8') as f:
            try:
                return json.load(f)
            except json.JSONDecodeError as e:
                raise PricingDataError(f"{filename} is not valid JSON: {e}") from e

    def fetch_global_pricing_settings(self) -> GlobalPricingSettings:
        return GlobalPricingSettings.from_dict(self._load_json(self.SETTINGS_FILE))

    def fetch_price_levels(self) -> list[PriceLevel]:
        df = self._load_csv(self.LEVELS_FILE)
        return [PriceLevel.from_dict(row) for row in df.to_dict(orient='records')]

    def fetch_product_price_matrix(self) -> list[ProductPriceEntry]:
        df = self._load_csv(self.MATRIX_FILE)
        return [ProductPriceEntry.from_dict(row) for row in df.to_dict(orient='records')]

    def fetch_customer_pricing_profile(self, customer_id: str) -> Optional[CustomerPricingProfile]:
        profiles = self._load_json(self.PROFILES_FILE, required=False) or []
        for data in profiles:
            if str(data.get('customerId', data.get('customer_id', ''))).strip() == str(customer_id).strip():
                return CustomerPricingProfile.from_dict(data)
        logger.debug("No pricing profile for customer %s", customer_id)
        return None
