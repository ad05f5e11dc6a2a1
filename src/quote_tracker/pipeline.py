from __future__ import annotations

import logging

from .buffer import BufferStage, RingBuffer
from .bus import BroadcastBus
from .compute import ComputeStage
from .config import Config
from .fetch import FetchStage
from .models import FetchRequest, IndicatorRecord, PriceSeries
from .provider import QuoteProvider
from .sink import CsvFileSink
from .supervisor import RestartPolicy, Supervisor

logger = logging.getLogger(__name__)


class Pipeline:
    """Fetch -> compute -> {buffer, sink}, each stage under its own supervisor."""

    def __init__(
        self,
        *,
        bus: BroadcastBus,
        fetch_stage: FetchStage,
        compute_stage: ComputeStage,
        buffer_stage: BufferStage,
        sink: CsvFileSink | None = None,
        policy: RestartPolicy | None = None,
    ) -> None:
        self.bus = bus
        self.fetch_stage = fetch_stage
        self.compute_stage = compute_stage
        self.buffer_stage = buffer_stage
        self.sink = sink
        self.supervisors = [
            Supervisor(name="fetch", bus=bus, message_type=FetchRequest, handler=fetch_stage.handle, policy=policy),
            Supervisor(name="compute", bus=bus, message_type=PriceSeries, handler=compute_stage.handle, policy=policy),
            Supervisor(name="buffer", bus=bus, message_type=IndicatorRecord, handler=buffer_stage.handle, policy=policy),
        ]
        if sink is not None:
            self.supervisors.append(
                Supervisor(name="sink", bus=bus, message_type=IndicatorRecord, handler=sink.handle, policy=policy)
            )

    def start(self) -> None:
        for supervisor in self.supervisors:
            supervisor.start()
        logger.info("Pipeline started: %s", ", ".join(s.name for s in self.supervisors))

    async def stop(self) -> None:
        self.bus.close()
        await self.fetch_stage.close()
        for supervisor in self.supervisors:
            await supervisor.stop()
        if self.sink is not None:
            self.sink.flush()
        logger.info("Pipeline stopped")


def build_pipeline(
    config: Config,
    *,
    provider: QuoteProvider,
    sink: CsvFileSink | None = None,
    bus: BroadcastBus | None = None,
) -> Pipeline:
    bus = bus or BroadcastBus()
    return Pipeline(
        bus=bus,
        fetch_stage=FetchStage(bus=bus, provider=provider, timeout_seconds=config.fetch_timeout_seconds),
        compute_stage=ComputeStage(bus=bus, sma_window=config.sma_window),
        buffer_stage=BufferStage(RingBuffer(config.buffer_capacity)),
        sink=sink,
        policy=RestartPolicy(
            max_restarts=config.worker_max_restarts,
            delay_seconds=config.worker_restart_delay_seconds,
        ),
    )
