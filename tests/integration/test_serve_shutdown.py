import os
import signal
import subprocess
import sys
import textwrap
import time
from pathlib import Path

import pytest

from quote_tracker.sink import CSV_HEADER

SRC_DIR = Path(__file__).resolve().parents[2] / "src"

SERVE_SCRIPT = textwrap.dedent(
    """
    import asyncio
    import logging
    import sys
    from datetime import datetime, timezone

    from quote_tracker.config import Config
    from quote_tracker.main import serve
    from quote_tracker.models import Quote


    class StaticProvider:
        async def get_quote_history(self, symbol, start, end):
            return [Quote(timestamp=1704153600, close=2.0), Quote(timestamp=1704240000, close=4.5)]


    logging.basicConfig(level=logging.INFO, format="%(name)s - %(message)s")
    config = Config(
        symbols=("AAPL", "MSFT"),
        fetch_interval_seconds=0.2,
        fetch_timeout_seconds=1.0,
        buffer_capacity=100,
        sma_window=30,
        output_dir=sys.argv[1],
        api_host="127.0.0.1",
        api_port=0,
        yahoo_chart_url="https://chart.test",
        quote_interval="1d",
        worker_max_restarts=None,
        worker_restart_delay_seconds=0.0,
        log_level="INFO",
    )
    asyncio.run(serve(config, start=datetime(2024, 1, 1, tzinfo=timezone.utc), provider=StaticProvider()))
    """
)


def _csv_lines(output_dir: Path) -> list[str]:
    files = list(output_dir.glob("*.csv"))
    if not files:
        return []
    return files[0].read_text(encoding="utf-8").splitlines()


@pytest.mark.skipif(sys.platform == "win32", reason="SIGTERM delivery is POSIX only")
def test_sigterm_stops_cleanly_and_keeps_csv_rows(tmp_path: Path) -> None:
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(SRC_DIR), env.get("PYTHONPATH")]))
    process = subprocess.Popen(
        [sys.executable, "-c", SERVE_SCRIPT, str(tmp_path)],
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )
    try:
        deadline = time.monotonic() + 15.0
        while len(_csv_lines(tmp_path)) < 5:
            if process.poll() is not None or time.monotonic() > deadline:
                break
            time.sleep(0.1)

        process.send_signal(signal.SIGTERM)
        _, stderr = process.communicate(timeout=15.0)
    finally:
        if process.poll() is None:
            process.kill()
            process.communicate()

    assert process.returncode == 0, stderr
    assert "Pipeline stopped" in stderr

    lines = _csv_lines(tmp_path)
    assert lines[0] == CSV_HEADER
    rows = lines[1:]
    assert len(rows) >= 4
    assert {row.split(",")[1] for row in rows} == {"AAPL", "MSFT"}
    assert all(",$4.50,125.00%,$2.00,$4.50," in row for row in rows)
