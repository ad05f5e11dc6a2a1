from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from .bus import BroadcastBus, Subscription

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[None]]


@dataclass(frozen=True)
class RestartPolicy:
    max_restarts: int | None = None
    delay_seconds: float = 0.0

    def allows(self, restarts: int) -> bool:
        return self.max_restarts is None or restarts <= self.max_restarts


class Supervisor:
    """Runs one stage worker and restarts it when its handler raises.

    ``start`` subscribes before it returns, so nothing published afterwards
    is missed. On a crash the worker's subscription is dropped and a fresh
    one is taken before the next attempt.
    """

    def __init__(
        self,
        *,
        name: str,
        bus: BroadcastBus,
        message_type: type,
        handler: Handler,
        policy: RestartPolicy | None = None,
    ) -> None:
        self.name = name
        self._bus = bus
        self._message_type = message_type
        self._handler = handler
        self._policy = policy or RestartPolicy()
        self._subscription: Subscription[Any] | None = None
        self._task: asyncio.Task[None] | None = None
        self.restarts = 0
        self.processed = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._subscription = self._bus.subscribe(self._message_type)
        self._task = asyncio.create_task(self._supervise(), name=f"{self.name}-supervisor")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._release()

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    def _release(self) -> None:
        if self._subscription is not None:
            self._bus.unsubscribe(self._subscription)
            self._subscription = None

    async def _supervise(self) -> None:
        while True:
            try:
                await self._worker()
                logger.info("%s worker finished: bus closed", self.name)
                return
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001
                logger.exception("%s worker crashed", self.name)
                self._release()

            self.restarts += 1
            if not self._policy.allows(self.restarts):
                logger.error(
                    "%s exceeded restart limit (%s); giving up",
                    self.name,
                    self._policy.max_restarts,
                )
                return
            if self._policy.delay_seconds > 0:
                await asyncio.sleep(self._policy.delay_seconds)
            if self._bus.closed:
                return
            logger.warning("Restarting %s worker (restart #%s)", self.name, self.restarts)
            self._subscription = self._bus.subscribe(self._message_type)

    async def _worker(self) -> None:
        if self._subscription is None:
            return
        async for message in self._subscription:
            await self._handler(message)
            self.processed += 1
