from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Deque

from .models import IndicatorRecord

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 10_000
DROP_LOG_EVERY = 1000


class RingBuffer:
    """Bounded FIFO of indicator records shared by the pipeline and queries.

    A full buffer evicts its oldest record on push. All access goes through
    one lock, so a drain never returns a record twice and never loses one
    that was pushed concurrently.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._capacity = capacity
        self._lock = threading.Lock()
        self._records: Deque[IndicatorRecord] = deque()
        self._dropped = 0
        self._pushed = 0
        self._drained = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def dropped(self) -> int:
        with self._lock:
            return self._dropped

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def push(self, record: IndicatorRecord) -> None:
        with self._lock:
            evicted: IndicatorRecord | None = None
            if len(self._records) >= self._capacity:
                evicted = self._records.popleft()
                self._dropped += 1
            self._records.append(record)
            self._pushed += 1
            dropped = self._dropped

        if evicted is not None and (dropped == 1 or dropped % DROP_LOG_EVERY == 0):
            logger.warning(
                "Buffer full (capacity=%s); evicted oldest record for '%s' (%s dropped so far)",
                self._capacity,
                evicted.symbol,
                dropped,
            )

    def drain(self, n: int) -> list[IndicatorRecord]:
        if n < 0:
            raise ValueError("n must be >= 0")
        with self._lock:
            amount = min(n, len(self._records))
            out = [self._records.popleft() for _ in range(amount)]
            self._drained += amount
        return out

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "size": len(self._records),
                "capacity": self._capacity,
                "pushed": self._pushed,
                "drained": self._drained,
                "dropped": self._dropped,
            }


class BufferStage:
    def __init__(self, buffer: RingBuffer | None = None) -> None:
        self.buffer = buffer or RingBuffer()

    async def handle(self, record: IndicatorRecord) -> None:
        self.buffer.push(record)

    def tail(self, n: int) -> list[IndicatorRecord]:
        return self.buffer.drain(n)
