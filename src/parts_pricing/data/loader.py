"""
Pricing Data Loader - Time-boxed cache over the shared pricing datasets.

The cache holds one PricingSnapshot and the time it was fetched. It is
replaced or cleared as a whole, so concurrent readers always get a complete
snapshot and no locking is needed. A settings change may stay invisible for
up to one TTL unless ``invalidate()`` is called.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from ..engine.models import PriceMatrix, PricingSnapshot
from .sources import PricingDataSource

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 30.0


class PricingDataLoader:
    """Loads settings, levels and the price matrix with a short-lived cache."""

    def __init__(
        self,
        source: PricingDataSource,
        ttl_seconds: float = DEFAULT_CACHE_TTL,
        max_workers: int = 3,
        clock: Callable[[], float] = time.monotonic
    ):
        self.source = source
        self.ttl_seconds = ttl_seconds
        self.max_workers = max_workers
        self._clock = clock
        self._cached: Optional[tuple[PricingSnapshot, float]] = None

    @property
    def is_cached(self) -> bool:
        return self._cached is not None

    def load(self) -> PricingSnapshot:
        """
        Return the cached snapshot, refetching when it is missing or expired.

        Fetch errors propagate to the caller.
        """
        cached = self._cached
        now = self._clock()
        if cached is not None and (now - cached[1]) < self.ttl_seconds:
            logger.debug("Pricing cache hit (age %.1fs)", now - cached[1])
            return cached[0]

        snapshot = self._fetch()
        self._cached = (snapshot, now)
        logger.info(
            "Pricing data loaded: %d levels, %d matrix prices",
            len(snapshot.levels), len(snapshot.matrix)
        )
        return snapshot

    def _fetch(self) -> PricingSnapshot:
        # The three datasets are independent; fetch them concurrently
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            settings_future = pool.submit(self.source.fetch_global_pricing_settings)
            levels_future = pool.submit(self.source.fetch_price_levels)
            matrix_future = pool.submit(self.source.fetch_product_price_matrix)
            settings = settings_future.result()
            levels = levels_future.result()
            entries = matrix_future.result()

        return PricingSnapshot(settings=settings, levels=levels, matrix=PriceMatrix(entries))

    def invalidate(self):
        """Clear the cache so the next load refetches regardless of TTL."""
        self._cached = None
        logger.info("Pricing cache invalidated")
