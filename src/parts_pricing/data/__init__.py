"""Data subpackage - pricing data sources and the cached loader."""
from .loader import PricingDataLoader
from .sources import PricingDataSource, InMemoryPricingSource, FilePricingSource

__all__ = ['PricingDataLoader', 'PricingDataSource', 'InMemoryPricingSource', 'FilePricingSource']
