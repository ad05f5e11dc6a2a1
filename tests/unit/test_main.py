import argparse
import asyncio
from dataclasses import replace
from datetime import datetime, timezone

import httpx
import pytest

from quote_tracker.config import Config
from quote_tracker.main import build_http_client, build_parser, parse_start


def _config() -> Config:
    return Config(
        symbols=("AAPL", "MSFT"),
        fetch_interval_seconds=30.0,
        fetch_timeout_seconds=20.0,
        buffer_capacity=10000,
        sma_window=30,
        output_dir=".",
        api_host="localhost",
        api_port=8080,
        yahoo_chart_url="https://query1.finance.yahoo.com/v8/finance/chart",
        quote_interval="1d",
        worker_max_restarts=None,
        worker_restart_delay_seconds=0.0,
        log_level="INFO",
    )


def test_parse_start_accepts_zulu_suffix() -> None:
    assert parse_start("2024-01-01T00:00:00Z") == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_parse_start_treats_naive_values_as_utc() -> None:
    assert parse_start("2024-01-01") == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_parse_start_normalizes_offsets_to_utc() -> None:
    assert parse_start("2024-01-01T02:00:00+02:00") == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_parse_start_rejects_garbage() -> None:
    with pytest.raises(argparse.ArgumentTypeError, match="Couldn't parse 'from' date"):
        parse_start("yesterday")


def test_parser_requires_from() -> None:
    with pytest.raises(SystemExit):
        build_parser(_config()).parse_args([])


def test_parser_defaults_symbols_from_config() -> None:
    args = build_parser(_config()).parse_args(["--from", "2024-01-01T00:00:00Z"])

    assert args.symbols == "AAPL,MSFT"
    assert args.start == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_parser_accepts_symbol_override() -> None:
    args = build_parser(_config()).parse_args(["-s", "uber,goog", "-f", "2024-01-01"])

    assert args.symbols == "uber,goog"


def test_http_client_uses_configured_timeout() -> None:
    client = build_http_client(_config())
    try:
        assert client.timeout == httpx.Timeout(20.0)
    finally:
        asyncio.run(client.aclose())


def test_zero_fetch_timeout_leaves_http_client_unbounded() -> None:
    client = build_http_client(replace(_config(), fetch_timeout_seconds=0.0))
    try:
        assert client.timeout == httpx.Timeout(None)
    finally:
        asyncio.run(client.aclose())
