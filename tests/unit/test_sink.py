import asyncio
from datetime import datetime, timezone
from pathlib import Path

import pytest

from quote_tracker.errors import SinkError
from quote_tracker.models import IndicatorRecord
from quote_tracker.sink import CSV_HEADER, CsvFileSink, default_output_path, format_row

RECORD = IndicatorRecord(
    symbol="AAPL",
    timestamp=datetime(2024, 3, 1, 21, 0, tzinfo=timezone.utc),
    price=179.66,
    pct_change=0.0523,
    period_min=165.0,
    period_max=191.5,
    last_sma=181.2345,
)


def test_format_row() -> None:
    assert format_row(RECORD) == "2024-03-01T21:00:00+00:00,AAPL,$179.66,5.23%,$165.00,$191.50,$181.23"


def test_default_output_path_uses_unix_timestamp(tmp_path: Path) -> None:
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    assert default_output_path(str(tmp_path), now) == tmp_path / "1704067200.csv"


def test_sink_writes_header_then_rows_and_closes(tmp_path: Path) -> None:
    path = tmp_path / "out" / "run.csv"

    with CsvFileSink(path) as sink:
        asyncio.run(sink.handle(RECORD))
        sink.append(RECORD)

    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == CSV_HEADER
    assert lines[1:] == [format_row(RECORD), format_row(RECORD)]
    assert sink.rows_written == 2


def test_sink_rows_reach_disk_before_close(tmp_path: Path) -> None:
    path = tmp_path / "run.csv"

    with CsvFileSink(path) as sink:
        assert path.read_text(encoding="utf-8").splitlines() == [CSV_HEADER]
        sink.append(RECORD)
        assert path.read_text(encoding="utf-8").splitlines() == [CSV_HEADER, format_row(RECORD)]


def test_sink_is_closed_when_body_raises(tmp_path: Path) -> None:
    path = tmp_path / "run.csv"

    with pytest.raises(RuntimeError):
        with CsvFileSink(path) as sink:
            sink.append(RECORD)
            raise RuntimeError("boom")

    assert path.read_text(encoding="utf-8").splitlines() == [CSV_HEADER, format_row(RECORD)]
    with pytest.raises(SinkError, match="not open"):
        sink.append(RECORD)


def test_sink_open_failure_is_fatal(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(SinkError, match="Could not open target file"):
        CsvFileSink(blocker / "run.csv").open()


def test_close_is_idempotent(tmp_path: Path) -> None:
    sink = CsvFileSink(tmp_path / "run.csv").open()

    sink.close()
    sink.close()
