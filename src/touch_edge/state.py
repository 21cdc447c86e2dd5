from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass, replace

from .messages import UpdateConfigMessage
from .models import Direction


@dataclass(frozen=True)
class LiveParameters:
    barrier: float = 2.0
    payout_pct: float = 109.0
    direction: Direction = "up"

    def to_payload(self) -> dict:
        return {
            "barrier": self.barrier,
            "payout_pct": self.payout_pct,
            "direction": self.direction,
        }


def _as_finite_float(value: object) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if not math.isfinite(parsed):
        return None
    return parsed


def parse_barrier(value: object) -> float | None:
    parsed = _as_finite_float(value)
    if parsed is None or parsed <= 0:
        return None
    return parsed


def parse_payout_pct(value: object) -> float | None:
    parsed = _as_finite_float(value)
    if parsed is None or parsed < 0:
        return None
    return parsed


def parse_direction(value: object) -> Direction | None:
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower()
    if normalized == "up":
        return "up"
    if normalized == "down":
        return "down"
    return None


class SessionState:
    def __init__(self, parameters: LiveParameters | None = None) -> None:
        self._lock = threading.Lock()
        self._started_ts = time.time()
        self._parameters = parameters or LiveParameters()
        self._tick_count = 0
        self._gap_events = 0
        self._reconnects = 0
        self._connections = 0
        self._last_tick_epoch: int | None = None

    @property
    def parameters(self) -> LiveParameters:
        with self._lock:
            return self._parameters

    @property
    def tick_count(self) -> int:
        with self._lock:
            return self._tick_count

    def apply_update(self, message: UpdateConfigMessage) -> list[str]:
        """Apply each valid field of an operator update; skip the rest."""
        changes: dict[str, object] = {}

        if message.barrier is not None:
            barrier = parse_barrier(message.barrier)
            if barrier is not None:
                changes["barrier"] = barrier

        if message.payout_pct is not None:
            payout_pct = parse_payout_pct(message.payout_pct)
            if payout_pct is not None:
                changes["payout_pct"] = payout_pct

        if message.direction is not None:
            direction = parse_direction(message.direction)
            if direction is not None:
                changes["direction"] = direction

        if changes:
            with self._lock:
                self._parameters = replace(self._parameters, **changes)
        return list(changes)

    def record_tick(self, epoch: int, gap_threshold_seconds: float) -> None:
        with self._lock:
            self._tick_count += 1
            if self._last_tick_epoch is not None and epoch - self._last_tick_epoch > gap_threshold_seconds:
                self._gap_events += 1
            self._last_tick_epoch = epoch

    def record_prefill(self, count: int, last_epoch: int | None) -> None:
        with self._lock:
            self._tick_count += count
            if last_epoch is not None:
                self._last_tick_epoch = last_epoch

    def record_reconnect(self) -> None:
        with self._lock:
            self._reconnects += 1
            self._tick_count = 0
            self._last_tick_epoch = None

    def client_connected(self) -> None:
        with self._lock:
            self._connections += 1

    def client_disconnected(self) -> None:
        with self._lock:
            self._connections = max(0, self._connections - 1)

    def server_stats(self) -> dict:
        with self._lock:
            return {
                "uptime": int(time.time() - self._started_ts),
                "connections": self._connections,
                "gaps": self._gap_events,
                "reconnects": self._reconnects,
            }

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "started_ts": self._started_ts,
                "parameters": self._parameters.to_payload(),
                "tick_count": self._tick_count,
                "last_tick_epoch": self._last_tick_epoch,
                "gap_events": self._gap_events,
                "reconnects": self._reconnects,
                "connections": self._connections,
            }
