from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .models import Candle, Countdown, Tick


class TickPayload(BaseModel):
    time: int
    value: float

    @classmethod
    def from_tick(cls, tick: Tick) -> TickPayload:
        return cls(time=tick.epoch, value=tick.price)


class CandlePayload(BaseModel):
    time: int
    open: float
    high: float
    low: float
    close: float

    @classmethod
    def from_candle(cls, candle: Candle) -> CandlePayload:
        return cls(**candle.to_payload())


class CountdownPayload(BaseModel):
    remaining: int
    total: int
    pct: float

    @classmethod
    def from_countdown(cls, countdown: Countdown) -> CountdownPayload:
        return cls(**countdown.to_payload())


class LiveParametersPayload(BaseModel):
    barrier: float
    payout_pct: float
    direction: Literal["up", "down"]


class HistoryPayload(BaseModel):
    ticks: list[TickPayload]
    candles: dict[str, list[CandlePayload]]


class ServerStats(BaseModel):
    uptime: int
    connections: int
    gaps: int
    reconnects: int


class AnalyticsPayload(BaseModel):
    symbol: str
    price: float
    tick_count: int
    warmup_progress: float
    warmup_done: bool
    volatility: dict[str, Any]
    microstructure: dict[str, float] | None
    direction: Literal["up", "down"]
    barrier: float
    payout_pct: float
    active: dict[str, Any]
    up: dict[str, Any]
    down: dict[str, Any]
    server_stats: ServerStats


class TickMessage(BaseModel):
    type: Literal["tick"] = "tick"
    data: TickPayload


class CandleClosedMessage(BaseModel):
    type: Literal["candle_closed"] = "candle_closed"
    timeframe: str
    data: CandlePayload


class CandleUpdateMessage(BaseModel):
    type: Literal["candle_update"] = "candle_update"
    timeframe: str
    data: CandlePayload


class CountdownMessage(BaseModel):
    type: Literal["countdown"] = "countdown"
    data: dict[str, CountdownPayload]


class AnalyticsMessage(BaseModel):
    type: Literal["analytics"] = "analytics"
    data: AnalyticsPayload


class HistoryMessage(BaseModel):
    type: Literal["history"] = "history"
    data: HistoryPayload


class ConfigMessage(BaseModel):
    type: Literal["config"] = "config"
    data: LiveParametersPayload


class SymbolMessage(BaseModel):
    type: Literal["symbol"] = "symbol"
    data: str


OutboundMessage = Annotated[
    Union[
        TickMessage,
        CandleClosedMessage,
        CandleUpdateMessage,
        CountdownMessage,
        AnalyticsMessage,
        HistoryMessage,
        ConfigMessage,
        SymbolMessage,
    ],
    Field(discriminator="type"),
]


class UpdateConfigMessage(BaseModel):
    """Operator parameter update.

    Field values stay raw here; each one is validated on its own when
    applied so one bad field never blocks the others.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["update_config"] = "update_config"
    barrier: Any = None
    payout_pct: Any = Field(default=None, alias="payoutROI")
    direction: Any = None


class RequestHistoryMessage(BaseModel):
    type: Literal["request_history"] = "request_history"


InboundMessage = Annotated[
    Union[UpdateConfigMessage, RequestHistoryMessage],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)


def parse_inbound(raw: str | bytes | dict) -> UpdateConfigMessage | RequestHistoryMessage | None:
    try:
        data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    try:
        return _inbound_adapter.validate_python(data)
    except ValidationError:
        return None


def encode(message: BaseModel) -> str:
    return message.model_dump_json()
