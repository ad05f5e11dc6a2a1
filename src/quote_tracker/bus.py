from __future__ import annotations

import asyncio
import logging
from typing import Any, Generic, TypeVar

from .errors import BusClosedError

logger = logging.getLogger(__name__)

M = TypeVar("M")

_CLOSED = object()


class Subscription(Generic[M]):
    """One subscriber's private queue for a single message type."""

    def __init__(self, bus: BroadcastBus, message_type: type[M]) -> None:
        self.bus = bus
        self.message_type = message_type
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    def _deliver(self, message: Any) -> None:
        self._queue.put_nowait(message)

    def pending(self) -> int:
        return self._queue.qsize()

    async def get(self) -> M:
        if self._closed:
            raise BusClosedError("subscription closed")
        item = await self._queue.get()
        if item is _CLOSED:
            self._closed = True
            raise BusClosedError("subscription closed")
        return item

    def __aiter__(self) -> Subscription[M]:
        return self

    async def __anext__(self) -> M:
        try:
            return await self.get()
        except BusClosedError:
            raise StopAsyncIteration from None


class BroadcastBus:
    """In-process publish/subscribe keyed by message type.

    Every subscriber owns an unbounded queue, so ``publish`` never waits on a
    subscriber and each subscriber sees every message of its type published
    after it subscribed, in publish order. Messages are dispatched on their
    exact type.
    """

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Subscription[Any]]] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, message_type: type[M]) -> Subscription[M]:
        if self._closed:
            raise BusClosedError("bus is closed")
        subscription: Subscription[M] = Subscription(self, message_type)
        if message_type not in self._subscribers:
            self._subscribers[message_type] = []
        self._subscribers[message_type].append(subscription)
        logger.debug(
            "Subscribed to %s (total subscribers: %s)",
            message_type.__name__,
            len(self._subscribers[message_type]),
        )
        return subscription

    def unsubscribe(self, subscription: Subscription[Any]) -> None:
        subscribers = self._subscribers.get(subscription.message_type)
        if subscribers is None or subscription not in subscribers:
            return
        subscribers.remove(subscription)
        if not subscribers:
            del self._subscribers[subscription.message_type]

    def subscriber_count(self, message_type: type) -> int:
        return len(self._subscribers.get(message_type, []))

    def publish(self, message: Any) -> int:
        """Deliver ``message`` to every current subscriber of its type.

        Returns the number of subscribers reached. Raises ``BusClosedError``
        once the bus has been closed.
        """
        if self._closed:
            raise BusClosedError(f"cannot publish {type(message).__name__}: bus is closed")

        subscribers = list(self._subscribers.get(type(message), []))
        if not subscribers:
            logger.debug("No subscribers for %s", type(message).__name__)
        for subscription in subscribers:
            subscription._deliver(message)  # noqa: SLF001
        return len(subscribers)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        subscriber_count = 0
        for subscribers in self._subscribers.values():
            for subscription in subscribers:
                subscription._deliver(_CLOSED)  # noqa: SLF001
                subscriber_count += 1
        self._subscribers.clear()
        logger.info("Bus closed: released %s subscribers", subscriber_count)
