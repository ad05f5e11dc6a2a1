from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from .bus import BroadcastBus
from .errors import BusClosedError
from .models import FetchRequest, PriceSeries
from .provider import QuoteProvider

logger = logging.getLogger(__name__)


class FetchStage:
    """Turns each FetchRequest into a PriceSeries on the bus.

    Every request runs in its own task, so one slow symbol never holds up the
    others. Provider failures become an empty series for that symbol.
    """

    def __init__(
        self,
        *,
        bus: BroadcastBus,
        provider: QuoteProvider,
        timeout_seconds: float | None = None,
    ) -> None:
        self._bus = bus
        self._provider = provider
        self._timeout_seconds = timeout_seconds or None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def fetch(self, symbol: str, start: datetime, end: datetime) -> PriceSeries:
        try:
            quotes = await asyncio.wait_for(
                self._provider.get_quote_history(symbol, start, end),
                timeout=self._timeout_seconds,
            )
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            logger.warning(
                "Ignoring provider timeout for symbol '%s' after %ss",
                symbol,
                self._timeout_seconds,
            )
            return PriceSeries(symbol=symbol)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Ignoring API error for symbol '%s': %s", symbol, exc)
            return PriceSeries(symbol=symbol)
        return PriceSeries(symbol=symbol, quotes=tuple(quotes))

    async def handle(self, request: FetchRequest) -> None:
        task = asyncio.create_task(self._fetch_and_publish(request), name=f"fetch-{request.symbol}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _fetch_and_publish(self, request: FetchRequest) -> None:
        series = await self.fetch(request.symbol, request.start, request.end)
        try:
            self._bus.publish(series)
        except BusClosedError as exc:
            logger.error("Dropping price series for '%s': %s", request.symbol, exc)

    async def drain(self) -> None:
        """Wait for every fetch started so far to publish its result."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
