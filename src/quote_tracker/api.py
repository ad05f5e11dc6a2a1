from __future__ import annotations

from datetime import datetime

from fastapi import FastAPI, Path, Request
from pydantic import BaseModel

from .buffer import BufferStage
from .models import IndicatorRecord


class IndicatorRecordResponse(BaseModel):
    symbol: str
    timestamp: datetime
    price: float
    pct_change: float
    period_min: float
    period_max: float
    last_sma: float

    @classmethod
    def from_record(cls, record: IndicatorRecord) -> IndicatorRecordResponse:
        return cls(**record.to_json())


class BufferStatus(BaseModel):
    size: int
    capacity: int
    pushed: int
    drained: int
    dropped: int


def create_app(buffer_stage: BufferStage) -> FastAPI:
    app = FastAPI(title="Quote Tracker API", version="0.1.0")
    app.state.buffer_stage = buffer_stage

    @app.get("/healthz")
    async def healthz() -> dict:
        return {"ok": True}

    @app.get("/status", response_model=BufferStatus)
    def status(request: Request) -> BufferStatus:
        return BufferStatus(**request.app.state.buffer_stage.buffer.snapshot())

    # sync handlers run in the threadpool; RingBuffer takes its own lock
    @app.get("/tail/{n}", response_model=list[IndicatorRecordResponse])
    def tail(request: Request, n: int = Path(ge=0)) -> list[IndicatorRecordResponse]:
        records = request.app.state.buffer_stage.tail(n)
        return [IndicatorRecordResponse.from_record(record) for record in records]

    return app
