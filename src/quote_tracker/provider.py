from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

import httpx

from .errors import ProviderError
from .models import Quote

logger = logging.getLogger(__name__)

YAHOO_CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart"
# Yahoo rejects requests without a browser-like agent.
DEFAULT_HEADERS = {"User-Agent": "Mozilla/5.0 (compatible; quote-tracker/0.1)"}


class QuoteProvider(Protocol):
    async def get_quote_history(
        self,
        symbol: str,
        start: datetime,
        end: datetime,
    ) -> list[Quote]: ...


class YahooQuoteProvider:
    def __init__(
        self,
        *,
        base_url: str = YAHOO_CHART_URL,
        interval: str = "1d",
        timeout_seconds: float | None = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.interval = interval
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def get_quote_history(self, symbol: str, start: datetime, end: datetime) -> list[Quote]:
        url = f"{self.base_url}/{symbol}"
        params = {
            "period1": int(start.timestamp()),
            "period2": int(end.timestamp()),
            "interval": self.interval,
            "events": "div|split",
        }
        try:
            if self._client is not None:
                response = await self._client.get(url, params=params, headers=DEFAULT_HEADERS)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.get(url, params=params, headers=DEFAULT_HEADERS)
        except httpx.HTTPError as exc:
            raise ProviderError(symbol, f"request failed: {exc}") from exc

        try:
            payload = response.json() if response.content else None
        except ValueError as exc:
            raise ProviderError(symbol, f"invalid JSON: HTTP {response.status_code}") from exc

        if not response.is_success:
            raise ProviderError(symbol, f"HTTP {response.status_code}: {_chart_error(payload)}")
        return parse_chart_payload(symbol, payload)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()


def _chart_error(payload: object) -> str | None:
    if not isinstance(payload, dict):
        return None
    chart = payload.get("chart")
    if not isinstance(chart, dict):
        return None
    error = chart.get("error")
    if isinstance(error, dict):
        return str(error.get("description") or error.get("code") or error)
    if error is not None:
        return str(error)
    return None


def parse_chart_payload(symbol: str, payload: object) -> list[Quote]:
    error = _chart_error(payload)
    if error is not None:
        raise ProviderError(symbol, error)

    chart = payload.get("chart") if isinstance(payload, dict) else None
    results = chart.get("result") if isinstance(chart, dict) else None
    if not isinstance(results, list) or not results or not isinstance(results[0], dict):
        raise ProviderError(symbol, "chart payload missing result")

    result = results[0]
    timestamps = result.get("timestamp")
    if not timestamps:
        return []

    try:
        closes = result["indicators"]["quote"][0]["close"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ProviderError(symbol, "chart payload missing close prices") from exc
    if not isinstance(closes, list) or len(closes) != len(timestamps):
        raise ProviderError(symbol, "chart payload has mismatched timestamps and closes")

    quotes: list[Quote] = []
    for ts, close in zip(timestamps, closes):
        if close is None:
            continue
        try:
            quotes.append(Quote(timestamp=int(ts), close=float(close)))
        except (TypeError, ValueError) as exc:
            raise ProviderError(symbol, f"bad sample at {ts!r}") from exc
    return quotes
