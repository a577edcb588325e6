from __future__ import annotations

import asyncio
import logging
from typing import Optional

from deepticker.domain import SymbolMatch
from deepticker.services.symbol_search_service import SymbolSearchService

logger = logging.getLogger(__name__)


class SearchDebouncer:
    """
    Debounces live-typed search input.

    Every ``submit`` supersedes the previous one: the pending search task is
    cancelled and its caller gets ``None`` instead of results.
    """

    def __init__(self, search_service: SymbolSearchService, delay_seconds: float = 0.5):
        self.search_service = search_service
        self.delay_seconds = delay_seconds
        self._pending: Optional[asyncio.Task] = None

    async def _run(self, query: str) -> list[SymbolMatch]:
        await asyncio.sleep(self.delay_seconds)
        return await self.search_service.search(query)

    async def submit(self, query: str) -> Optional[list[SymbolMatch]]:
        self.cancel()
        task = asyncio.create_task(self._run(query))
        self._pending = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._pending is task and task.done():
                self._pending = None
        if task.cancelled():
            logger.debug(f"Search for {query!r} superseded")
            return None
        return task.result()

    def cancel(self):
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
