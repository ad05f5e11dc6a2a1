from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import TextIO

from .errors import SinkError
from .models import IndicatorRecord

logger = logging.getLogger(__name__)

CSV_HEADER = "period start,symbol,price,change %,min,max,30d avg"


def format_row(record: IndicatorRecord) -> str:
    return (
        f"{record.timestamp.isoformat()},{record.symbol},"
        f"${record.price:.2f},{record.pct_change * 100.0:.2f}%,"
        f"${record.period_min:.2f},${record.period_max:.2f},${record.last_sma:.2f}"
    )


def default_output_path(output_dir: str, now: datetime | None = None) -> Path:
    now = now or datetime.now(timezone.utc)
    return Path(output_dir) / f"{int(now.timestamp())}.csv"


class CsvFileSink:
    """Appends indicator records to one CSV file per run.

    Use it as a context manager so the file is flushed and closed on every
    exit path.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._file: TextIO | None = None
        self.rows_written = 0

    @property
    def path(self) -> Path:
        return self._path

    def open(self) -> CsvFileSink:
        if self._file is not None:
            return self
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._file = self._path.open("w", encoding="utf-8", newline="")
        except OSError as exc:
            raise SinkError(f"Could not open target file '{self._path}': {exc}") from exc
        self._file.write(CSV_HEADER + "\n")
        self._file.flush()
        logger.info("Writing indicators to %s", self._path)
        return self

    def append(self, record: IndicatorRecord) -> None:
        with self._lock:
            if self._file is None:
                raise SinkError(f"sink '{self._path}' is not open")
            self._file.write(format_row(record) + "\n")
            self._file.flush()
            self.rows_written += 1

    async def handle(self, record: IndicatorRecord) -> None:
        self.append(record)

    def flush(self) -> None:
        with self._lock:
            if self._file is not None:
                self._file.flush()

    def close(self) -> None:
        with self._lock:
            if self._file is None:
                return
            try:
                self._file.flush()
            finally:
                self._file.close()
                self._file = None
        logger.info("Closed %s after %s rows", self._path, self.rows_written)

    def __enter__(self) -> CsvFileSink:
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()
