from __future__ import annotations

import logging

from .bus import BroadcastBus
from .errors import BusClosedError
from .models import IndicatorRecord, PriceSeries, utc_from_epoch
from .signals import MaxPrice, MinPrice, PriceDifference, WindowedSMA
from .sink import format_row

logger = logging.getLogger(__name__)

DEFAULT_SMA_WINDOW = 30


def build_indicator_record(series: PriceSeries, sma_window: int = DEFAULT_SMA_WINDOW) -> IndicatorRecord | None:
    if series.is_empty():
        return None

    # sorted() is stable, so equal timestamps keep their arrival order
    quotes = sorted(series.quotes, key=lambda q: q.timestamp)
    closes = [q.close for q in quotes]

    period_max = MaxPrice().calculate(closes)
    period_min = MinPrice().calculate(closes)
    diff = PriceDifference().calculate(closes)
    sma = WindowedSMA(window_size=sma_window).calculate(closes) or []

    return IndicatorRecord(
        symbol=series.symbol,
        timestamp=utc_from_epoch(quotes[-1].timestamp),
        price=closes[-1],
        pct_change=diff[1] if diff is not None else 0.0,
        period_min=period_min if period_min is not None else 0.0,
        period_max=period_max if period_max is not None else 0.0,
        last_sma=sma[-1] if sma else 0.0,
    )


class ComputeStage:
    def __init__(self, *, bus: BroadcastBus, sma_window: int = DEFAULT_SMA_WINDOW) -> None:
        self._bus = bus
        self._sma_window = sma_window
        self.emitted = 0

    async def handle(self, series: PriceSeries) -> None:
        record = build_indicator_record(series, self._sma_window)
        if record is None:
            logger.info("Got nothing for '%s'", series.symbol)
            return

        try:
            self._bus.publish(record)
        except BusClosedError as exc:
            logger.error("Dropping indicators for '%s': %s", record.symbol, exc)
            return
        self.emitted += 1
        logger.info("%s", format_row(record))
