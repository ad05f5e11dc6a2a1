from __future__ import annotations


class QuoteTrackerError(Exception):
    pass


class ProviderError(QuoteTrackerError):
    def __init__(self, symbol: str, reason: str) -> None:
        super().__init__(f"{symbol}: {reason}")
        self.symbol = symbol
        self.reason = reason


class BusClosedError(QuoteTrackerError):
    pass


class SinkError(QuoteTrackerError):
    pass
