"""
Background cache maintenance.
Periodically deletes expired cache entries from memory and the durable backend.
"""
import asyncio
import logging

from deepticker.cache.quote_cache import QuoteCache
from deepticker.observability import RuntimeObservability

logger = logging.getLogger(__name__)


class CacheSweeper:
    """Runs ``QuoteCache.sweep_expired`` on a fixed interval until stopped."""

    def __init__(self, cache: QuoteCache, interval_seconds: float, observability: RuntimeObservability):
        self.cache = cache
        self.interval_seconds = interval_seconds
        self.observability = observability
        self.running = False

    def sweep_once(self) -> int:
        removed = self.cache.sweep_expired()
        self.observability.mark_cache_sweep(removed)
        if removed:
            logger.info(f"Swept {removed} expired cache entries")
        return removed

    async def start(self):
        """Start the sweep loop."""
        self.running = True
        logger.info(f"Starting cache sweeper (interval: {self.interval_seconds}s)")

        while self.running:
            await asyncio.sleep(self.interval_seconds)
            if not self.running:
                break
            try:
                self.sweep_once()
            except Exception as e:
                logger.error(f"Error in cache sweep: {e}", exc_info=True)

    async def stop(self):
        """Stop the sweep loop."""
        logger.info("Stopping cache sweeper...")
        self.running = False
