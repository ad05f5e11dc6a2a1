from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(frozen=True)
class Quote:
    timestamp: int
    close: float


@dataclass(frozen=True)
class PriceSeries:
    symbol: str
    quotes: tuple[Quote, ...] = ()

    def is_empty(self) -> bool:
        return not self.quotes


@dataclass(frozen=True)
class FetchRequest:
    symbol: str
    start: datetime
    end: datetime


@dataclass(frozen=True)
class IndicatorRecord:
    symbol: str
    timestamp: datetime
    price: float
    pct_change: float
    period_min: float
    period_max: float
    last_sma: float

    def to_json(self) -> dict:
        return {
            "symbol": self.symbol,
            "timestamp": self.timestamp.isoformat(),
            "price": self.price,
            "pct_change": self.pct_change,
            "period_min": self.period_min,
            "period_max": self.period_max,
            "last_sma": self.last_sma,
        }


def utc_from_epoch(ts: int | float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)
