from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, Sequence, TypeVar

T = TypeVar("T")


def _mean(window: Sequence[float]) -> float:
    # plain left-to-right accumulation; builtin sum() compensates on 3.12+
    total = 0.0
    for value in window:
        total += value
    return total / len(window)


class Signal(ABC, Generic[T]):
    """A calculation over an ordered series of prices.

    ``calculate`` returns ``None`` when the series is not usable for the
    signal. An empty list is a valid result and is not the same thing.
    """

    @abstractmethod
    def calculate(self, series: Sequence[float]) -> T | None:
        raise NotImplementedError


@dataclass(frozen=True)
class PriceDifference(Signal[tuple[float, float]]):
    """Absolute and relative change between the first and last price."""

    def calculate(self, series: Sequence[float]) -> tuple[float, float] | None:
        if not series:
            return None
        first, last = series[0], series[-1]
        abs_diff = last - first
        base = first if first != 0 else 1.0
        return abs_diff, abs_diff / base


@dataclass(frozen=True)
class WindowedSMA(Signal[list[float]]):
    window_size: int

    def calculate(self, series: Sequence[float]) -> list[float] | None:
        if not series or self.window_size <= 1:
            return None
        size = self.window_size
        return [_mean(series[i : i + size]) for i in range(len(series) - size + 1)]


@dataclass(frozen=True)
class MaxPrice(Signal[float]):
    def calculate(self, series: Sequence[float]) -> float | None:
        if not series:
            return None
        return max(series)


@dataclass(frozen=True)
class MinPrice(Signal[float]):
    def calculate(self, series: Sequence[float]) -> float | None:
        if not series:
            return None
        return min(series)
