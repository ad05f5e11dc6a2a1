from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from .bus import BroadcastBus
from .errors import BusClosedError
from .models import FetchRequest

logger = logging.getLogger(__name__)


@dataclass
class CycleScheduler:
    symbols: tuple[str, ...]
    start: datetime
    interval_seconds: float = 30.0

    def __post_init__(self) -> None:
        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.ticks = 0

    def build_requests(self, now: datetime | None = None) -> list[FetchRequest]:
        end = now or datetime.now(timezone.utc)
        return [FetchRequest(symbol=symbol, start=self.start, end=end) for symbol in self.symbols]

    async def run(self, bus: BroadcastBus, max_ticks: int | None = None) -> int:
        """Publish one FetchRequest per symbol on a fixed wall-clock cadence.

        The first tick fires immediately. Ticks do not wait for the previous
        cycle's work to finish. Returns the number of ticks completed; stops
        early if the bus has been closed.
        """
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        fired = 0

        while max_ticks is None or fired < max_ticks:
            delay = next_tick - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)

            requests = self.build_requests()
            try:
                for request in requests:
                    bus.publish(request)
            except BusClosedError as exc:
                logger.error("Stopping scheduler: %s", exc)
                break

            fired += 1
            self.ticks += 1
            logger.debug("Tick %s: requested %s symbols", self.ticks, len(requests))

            next_tick += self.interval_seconds
            behind = loop.time() - next_tick
            if behind > 0:
                skipped = int(behind // self.interval_seconds) + 1
                next_tick += skipped * self.interval_seconds
                logger.warning("Scheduler fell behind; skipped %s tick(s)", skipped)

        return fired
