from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .candles import parse_timeframes


@dataclass(frozen=True)
class Config:
    deriv_app_id: int
    deriv_api_token: str | None
    deriv_ws_url: str
    symbol: str
    max_tick_history: int
    vol_windows: tuple[int, ...]
    vol_short_window: int
    vol_baseline_window: int
    touch_window_ticks: int
    momentum_window: int
    warmup_ticks: int
    candle_timeframes: dict[str, int]
    analytics_interval_seconds: float
    history_seconds: int
    history_timeout_seconds: float
    ws_ping_interval_seconds: int
    sample_db_path: str
    min_empirical_samples: int
    low_sample_warning: int
    theoretical_weight: float
    default_barrier: float
    default_payout_pct: float
    default_direction: str
    gap_threshold_seconds: float
    api_port: int


def _int_list_from_env(value: str | None, default: str) -> tuple[int, ...]:
    raw = value if value is not None and value.strip() else default
    return tuple(int(part) for part in raw.split(",") if part.strip())


def _positive(name: str, value: int | float) -> None:
    if value <= 0:
        raise ValueError(f"{name} must be > 0")


def load_config() -> Config:
    load_dotenv()

    vol_windows = _int_list_from_env(os.getenv("VOL_WINDOWS"), "10,30,60,120,300")
    vol_short_window = int(os.getenv("VOL_SHORT_WINDOW", "30"))
    vol_baseline_window = int(os.getenv("VOL_BASELINE_WINDOW", "300"))
    if not vol_windows or any(w <= 0 for w in vol_windows):
        raise ValueError("VOL_WINDOWS must list positive tick counts")
    if vol_short_window not in vol_windows:
        raise ValueError("VOL_SHORT_WINDOW must be one of VOL_WINDOWS")
    if vol_baseline_window not in vol_windows:
        raise ValueError("VOL_BASELINE_WINDOW must be one of VOL_WINDOWS")

    candle_timeframes = parse_timeframes(
        os.getenv("CANDLE_TIMEFRAMES", "5s,10s,15s,30s,1m,2m,5m").split(",")
    )

    theoretical_weight = float(os.getenv("THEORETICAL_WEIGHT", "0.6"))
    if not 0.0 <= theoretical_weight <= 1.0:
        raise ValueError("THEORETICAL_WEIGHT must be within [0, 1]")

    default_direction = os.getenv("DEFAULT_DIRECTION", "up").strip().lower()
    if default_direction not in {"up", "down"}:
        raise ValueError("DEFAULT_DIRECTION must be 'up' or 'down'")

    max_tick_history = int(os.getenv("MAX_TICK_HISTORY", "3000"))
    touch_window_ticks = int(os.getenv("TOUCH_WINDOW_TICKS", "120"))
    momentum_window = int(os.getenv("MOMENTUM_WINDOW", "10"))
    analytics_interval_seconds = float(os.getenv("ANALYTICS_INTERVAL_SECONDS", "1.0"))
    _positive("MAX_TICK_HISTORY", max_tick_history)
    _positive("TOUCH_WINDOW_TICKS", touch_window_ticks)
    _positive("MOMENTUM_WINDOW", momentum_window)
    _positive("ANALYTICS_INTERVAL_SECONDS", analytics_interval_seconds)

    return Config(
        deriv_app_id=int(os.getenv("DERIV_APP_ID", "1089")),
        deriv_api_token=os.getenv("DERIV_API_TOKEN", "").strip() or None,
        deriv_ws_url=os.getenv("DERIV_WS_URL", "wss://ws.derivws.com/websockets/v3").strip(),
        symbol=os.getenv("TOUCH_SYMBOL", "1HZ100V").strip(),
        max_tick_history=max_tick_history,
        vol_windows=vol_windows,
        vol_short_window=vol_short_window,
        vol_baseline_window=vol_baseline_window,
        touch_window_ticks=touch_window_ticks,
        momentum_window=momentum_window,
        warmup_ticks=int(os.getenv("WARMUP_TICKS", "300")),
        candle_timeframes=candle_timeframes,
        analytics_interval_seconds=analytics_interval_seconds,
        history_seconds=int(os.getenv("HISTORY_SECONDS", "3600")),
        history_timeout_seconds=float(os.getenv("HISTORY_TIMEOUT_SECONDS", "15")),
        ws_ping_interval_seconds=int(os.getenv("WS_PING_INTERVAL_SECONDS", "30")),
        sample_db_path=os.getenv("SAMPLE_DB_PATH", "data/ticks.db").strip(),
        min_empirical_samples=int(os.getenv("MIN_EMPIRICAL_SAMPLES", "100")),
        low_sample_warning=int(os.getenv("LOW_SAMPLE_WARNING", "500")),
        theoretical_weight=theoretical_weight,
        default_barrier=float(os.getenv("DEFAULT_BARRIER", "2.0")),
        default_payout_pct=float(os.getenv("DEFAULT_PAYOUT_PCT", "109")),
        default_direction=default_direction,
        gap_threshold_seconds=float(os.getenv("GAP_THRESHOLD_SECONDS", "2.5")),
        api_port=int(os.getenv("API_PORT", "8080")),
    )
