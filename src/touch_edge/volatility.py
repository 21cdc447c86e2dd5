from __future__ import annotations

import math
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field
from statistics import pstdev
from typing import Deque

from .models import Tick
from .tick_store import TickBuffer

# (minimum ratio, label), checked in order
VOL_RATIO_LABELS: tuple[tuple[float, str], ...] = (
    (1.3, "HIGH"),
    (1.1, "ABOVE AVG"),
    (0.9, "NORMAL"),
    (0.7, "BELOW AVG"),
)
VOL_RATIO_FLOOR_LABEL = "LOW"
NOT_AVAILABLE = "N/A"

TREND_HISTORY_SIZE = 60
TREND_LAG = 30
TREND_TOLERANCE = 0.05
MOMENTUM_THRESHOLD = 0.4


@dataclass(frozen=True)
class VolatilitySnapshot:
    rolling_vol: dict[int, float | None] = field(default_factory=dict)
    vol_ratio: float | None = None
    vol_ratio_label: str = NOT_AVAILABLE
    vol_trend: str = NOT_AVAILABLE
    momentum_score: float = 0.0
    momentum_direction: str = "NEUTRAL"

    def to_payload(self) -> dict:
        return {
            "rolling_vol": {str(window): sigma for window, sigma in self.rolling_vol.items()},
            "vol_ratio": self.vol_ratio,
            "vol_ratio_label": self.vol_ratio_label,
            "vol_trend": self.vol_trend,
            "momentum": {
                "score": self.momentum_score,
                "direction": self.momentum_direction,
            },
        }


def log_returns(ticks: Sequence[Tick]) -> list[float]:
    return [
        math.log(ticks[i].price / ticks[i - 1].price)
        for i in range(1, len(ticks))
    ]


def classify_vol_ratio(ratio: float | None) -> str:
    if ratio is None:
        return NOT_AVAILABLE
    for threshold, label in VOL_RATIO_LABELS:
        if ratio >= threshold:
            return label
    return VOL_RATIO_FLOOR_LABEL


def classify_momentum(score: float) -> str:
    if score > MOMENTUM_THRESHOLD:
        return "UP"
    if score < -MOMENTUM_THRESHOLD:
        return "DOWN"
    return "NEUTRAL"


class VolatilityEngine:
    """Rolling log-return statistics over the tick buffer.

    Every `update()` recomputes the per-window sigmas from the whole buffer.
    Only the short-window sigma history used for the trend survives between
    calls.
    """

    def __init__(
        self,
        tick_buffer: TickBuffer,
        *,
        windows: Sequence[int] = (10, 30, 60, 120, 300),
        short_window: int = 30,
        baseline_window: int = 300,
        momentum_window: int = 10,
    ) -> None:
        if not windows or any(w <= 0 for w in windows):
            raise ValueError("volatility windows must be positive")
        if short_window not in windows or baseline_window not in windows:
            raise ValueError("short and baseline windows must be listed in windows")
        if momentum_window <= 0:
            raise ValueError("momentum_window must be > 0")

        self.tick_buffer = tick_buffer
        self.windows = tuple(windows)
        self.short_window = short_window
        self.baseline_window = baseline_window
        self.momentum_window = momentum_window

        self._rolling_vol: dict[int, float | None] = {w: None for w in self.windows}
        self._vol_ratio: float | None = None
        self._vol_trend = NOT_AVAILABLE
        self._short_history: Deque[float] = deque(maxlen=TREND_HISTORY_SIZE)
        self._momentum_score = 0.0

    def update(self) -> None:
        returns = log_returns(self.tick_buffer.all())

        for window in self.windows:
            if len(returns) >= window:
                self._rolling_vol[window] = pstdev(returns[-window:])
            else:
                self._rolling_vol[window] = None

        short = self._rolling_vol[self.short_window]
        baseline = self._rolling_vol[self.baseline_window]
        if short is not None and baseline is not None and baseline > 0:
            self._vol_ratio = short / baseline
        else:
            self._vol_ratio = None

        if short is not None:
            self._short_history.append(short)
            if len(self._short_history) > TREND_LAG:
                previous = self._short_history[-(TREND_LAG + 1)]
                if short > previous * (1 + TREND_TOLERANCE):
                    self._vol_trend = "EXPANDING"
                elif short < previous * (1 - TREND_TOLERANCE):
                    self._vol_trend = "CONTRACTING"
                else:
                    self._vol_trend = "STABLE"

        if len(returns) >= self.momentum_window:
            recent = returns[-self.momentum_window:]
            ups = sum(1 for r in recent if r > 0)
            downs = sum(1 for r in recent if r < 0)
            self._momentum_score = (ups - downs) / self.momentum_window
        else:
            self._momentum_score = 0.0

    def reset(self) -> None:
        """Forget everything derived from ticks before a stream break."""
        self._rolling_vol = {w: None for w in self.windows}
        self._vol_ratio = None
        self._vol_trend = NOT_AVAILABLE
        self._short_history.clear()
        self._momentum_score = 0.0

    def get_sigma(self, window: int) -> float | None:
        return self._rolling_vol.get(window)

    @property
    def vol_ratio(self) -> float | None:
        return self._vol_ratio

    @property
    def vol_trend(self) -> str:
        return self._vol_trend

    def get_snapshot(self) -> VolatilitySnapshot:
        return VolatilitySnapshot(
            rolling_vol=dict(self._rolling_vol),
            vol_ratio=self._vol_ratio,
            vol_ratio_label=classify_vol_ratio(self._vol_ratio),
            vol_trend=self._vol_trend,
            momentum_score=self._momentum_score,
            momentum_direction=classify_momentum(self._momentum_score),
        )
