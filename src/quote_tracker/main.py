from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from dataclasses import replace
from datetime import datetime, timezone

import httpx
import uvicorn

from .api import create_app
from .bus import BroadcastBus
from .config import Config, load_config, parse_symbols
from .errors import SinkError
from .pipeline import build_pipeline
from .provider import QuoteProvider, YahooQuoteProvider
from .scheduler import CycleScheduler
from .sink import CsvFileSink, default_output_path

logger = logging.getLogger(__name__)


def parse_start(value: str) -> datetime:
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Couldn't parse 'from' date: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def build_parser(config: Config) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quote-tracker",
        description="Periodically fetch quotes, derive performance indicators and serve the latest ones",
    )
    parser.add_argument(
        "-s",
        "--symbols",
        default=",".join(config.symbols),
        help="Comma separated ticker symbols (default: %(default)s)",
    )
    parser.add_argument(
        "-f",
        "--from",
        dest="start",
        required=True,
        type=parse_start,
        help="Start of the quote window, ISO-8601 (e.g. 2024-01-01T00:00:00Z)",
    )
    return parser


async def _run_scheduler(scheduler: CycleScheduler, bus: BroadcastBus, server: uvicorn.Server) -> None:
    await scheduler.run(bus)
    # scheduler only returns once the bus is unusable
    server.should_exit = True


async def _serve_http(server: uvicorn.Server, scheduler_task: asyncio.Task[None]) -> None:
    await server.serve()
    scheduler_task.cancel()


def build_http_client(config: Config) -> httpx.AsyncClient:
    # FETCH_TIMEOUT_SECONDS=0 means no bound at all, including inside httpx
    return httpx.AsyncClient(timeout=config.fetch_timeout_seconds or None)


def _install_stop_handler(
    loop: asyncio.AbstractEventLoop,
    server: uvicorn.Server,
    scheduler_task: asyncio.Task[None],
) -> bool:
    def _request_stop() -> None:
        logger.info("Received SIGTERM; shutting down")
        server.should_exit = True
        scheduler_task.cancel()

    try:
        loop.add_signal_handler(signal.SIGTERM, _request_stop)
    except (NotImplementedError, RuntimeError):
        logger.debug("SIGTERM handler not available on this platform")
        return False
    return True


async def serve(config: Config, *, start: datetime, provider: QuoteProvider | None = None) -> None:
    output_path = default_output_path(config.output_dir)
    with CsvFileSink(output_path) as sink:
        http_client: httpx.AsyncClient | None = None
        if provider is None:
            http_client = build_http_client(config)
            provider = YahooQuoteProvider(
                base_url=config.yahoo_chart_url,
                interval=config.quote_interval,
                client=http_client,
            )
        pipeline = build_pipeline(config, provider=provider, sink=sink)
        scheduler = CycleScheduler(
            symbols=config.symbols,
            start=start,
            interval_seconds=config.fetch_interval_seconds,
        )
        server = uvicorn.Server(
            uvicorn.Config(
                app=create_app(pipeline.buffer_stage),
                host=config.api_host,
                port=config.api_port,
                log_level="info",
            )
        )

        logger.info(
            "Tracking %s from %s every %ss",
            ",".join(config.symbols),
            start.isoformat(),
            config.fetch_interval_seconds,
        )
        loop = asyncio.get_running_loop()
        stop_handler_installed = False
        pipeline.start()
        try:
            async with asyncio.TaskGroup() as tg:
                scheduler_task = tg.create_task(_run_scheduler(scheduler, pipeline.bus, server))
                tg.create_task(_serve_http(server, scheduler_task))
                stop_handler_installed = _install_stop_handler(loop, server, scheduler_task)
        finally:
            if stop_handler_installed:
                loop.remove_signal_handler(signal.SIGTERM)
            await pipeline.stop()
            if http_client is not None:
                await http_client.aclose()


def main(argv: list[str] | None = None) -> None:
    try:
        config = load_config()
    except ValueError as exc:
        raise SystemExit(f"quote-tracker: {exc}") from exc
    args = build_parser(config).parse_args(argv)

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )

    try:
        config = replace(config, symbols=parse_symbols(args.symbols))
    except ValueError as exc:
        raise SystemExit(f"quote-tracker: {exc}") from exc

    try:
        asyncio.run(serve(config, start=args.start))
    except SinkError as exc:
        logger.error("%s", exc)
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down")


if __name__ == "__main__":
    main()
