from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .provider import YAHOO_CHART_URL

DEFAULT_SYMBOLS = "AAPL,MSFT,UBER,GOOG"
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@dataclass(frozen=True)
class Config:
    symbols: tuple[str, ...]
    fetch_interval_seconds: float
    fetch_timeout_seconds: float
    buffer_capacity: int
    sma_window: int
    output_dir: str
    api_host: str
    api_port: int
    yahoo_chart_url: str
    quote_interval: str
    worker_max_restarts: int | None
    worker_restart_delay_seconds: float
    log_level: str



def parse_symbols(value: str) -> tuple[str, ...]:
    symbols = tuple(s.strip().upper() for s in value.split(",") if s.strip())
    if not symbols:
        raise ValueError("at least one symbol is required")
    return symbols



def _int_from_env(name: str, default: str) -> int:
    value = os.getenv(name, default).strip()
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc



def _float_from_env(name: str, default: str) -> float:
    value = os.getenv(name, default).strip()
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc



def _optional_int_from_env(name: str) -> int | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return _int_from_env(name, value)



def load_config() -> Config:
    load_dotenv()

    fetch_interval_seconds = _float_from_env("FETCH_INTERVAL_SECONDS", "30")
    if fetch_interval_seconds <= 0:
        raise ValueError("FETCH_INTERVAL_SECONDS must be > 0")

    fetch_timeout_seconds = _float_from_env("FETCH_TIMEOUT_SECONDS", "20")
    if fetch_timeout_seconds < 0:
        raise ValueError("FETCH_TIMEOUT_SECONDS must be >= 0")

    buffer_capacity = _int_from_env("BUFFER_CAPACITY", "10000")
    if buffer_capacity <= 0:
        raise ValueError("BUFFER_CAPACITY must be > 0")

    sma_window = _int_from_env("SMA_WINDOW", "30")
    if sma_window <= 1:
        raise ValueError("SMA_WINDOW must be > 1")

    worker_max_restarts = _optional_int_from_env("WORKER_MAX_RESTARTS")
    if worker_max_restarts is not None and worker_max_restarts < 0:
        raise ValueError("WORKER_MAX_RESTARTS must be >= 0")

    api_port = _int_from_env("API_PORT", "8080")
    if not 0 <= api_port <= 65535:
        raise ValueError("API_PORT must be between 0 and 65535")

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    if log_level not in LOG_LEVELS:
        raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}")

    return Config(
        symbols=parse_symbols(os.getenv("QUOTE_SYMBOLS", DEFAULT_SYMBOLS)),
        fetch_interval_seconds=fetch_interval_seconds,
        fetch_timeout_seconds=fetch_timeout_seconds,
        buffer_capacity=buffer_capacity,
        sma_window=sma_window,
        output_dir=os.getenv("OUTPUT_DIR", ".").strip() or ".",
        api_host=os.getenv("API_HOST", "localhost").strip(),
        api_port=api_port,
        yahoo_chart_url=os.getenv("YAHOO_CHART_URL", YAHOO_CHART_URL).strip(),
        quote_interval=os.getenv("QUOTE_INTERVAL", "1d").strip(),
        worker_max_restarts=worker_max_restarts,
        worker_restart_delay_seconds=_float_from_env("WORKER_RESTART_DELAY_SECONDS", "0"),
        log_level=log_level,
    )
