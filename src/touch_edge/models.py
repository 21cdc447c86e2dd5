from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Direction = Literal["up", "down"]


@dataclass(frozen=True)
class Tick:
    epoch: int
    price: float


@dataclass
class Candle:
    open_time: int
    close_time: int
    open: float | None = None
    high: float | None = None
    low: float | None = None
    close: float | None = None

    @property
    def is_empty(self) -> bool:
        return self.open is None

    def to_payload(self) -> dict:
        return {
            "time": self.open_time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
        }


@dataclass(frozen=True)
class Countdown:
    remaining: int
    total: int
    pct: float

    def to_payload(self) -> dict:
        return {"remaining": self.remaining, "total": self.total, "pct": self.pct}
