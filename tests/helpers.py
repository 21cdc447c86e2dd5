from dataclasses import replace


from src.touch_edge.candles import DEFAULT_TIMEFRAMES
from src.touch_edge.config import Config


def make_config(**overrides) -> Config:
    base = Config(
        deriv_app_id=1089,
        deriv_api_token=None,
        deriv_ws_url="wss://example.test/websockets/v3",
        symbol="1HZ100V",
        max_tick_history=3000,
        vol_windows=(10, 30, 60, 120, 300),
        vol_short_window=30,
        vol_baseline_window=300,
        touch_window_ticks=120,
        momentum_window=10,
        warmup_ticks=300,
        candle_timeframes=dict(DEFAULT_TIMEFRAMES),
        analytics_interval_seconds=1.0,
        history_seconds=3600,
        history_timeout_seconds=15.0,
        ws_ping_interval_seconds=30,
        sample_db_path="data/does-not-exist.db",
        min_empirical_samples=100,
        low_sample_warning=500,
        theoretical_weight=0.6,
        default_barrier=2.0,
        default_payout_pct=109.0,
        default_direction="up",
        gap_threshold_seconds=2.5,
        api_port=8080,
    )
    return replace(base, **overrides)


def walk_prices(count: int, start: float = 1000.0) -> list[float]:
    # deterministic zig-zag with a slowly varying amplitude
    prices = [start]
    for i in range(1, count):
        step = (0.5 + (i % 7) * 0.1) * (1 if (i * 7) % 3 else -1)
        prices.append(prices[-1] + step)
    return prices
