from __future__ import annotations

from collections.abc import Iterable, Mapping

from .models import Candle, Countdown, Tick

DEFAULT_TIMEFRAMES: dict[str, int] = {
    "5s": 5,
    "10s": 10,
    "15s": 15,
    "30s": 30,
    "1m": 60,
    "2m": 120,
    "5m": 300,
}


def parse_window_seconds(window: str) -> int:
    value = window.strip().lower()
    if not value:
        raise ValueError("window must not be empty")

    unit = value[-1]
    try:
        number = int(value[:-1])
    except ValueError as exc:
        raise ValueError(f"invalid window: {window!r}") from exc
    if number <= 0:
        raise ValueError("window must be > 0")

    factors = {
        "s": 1,
        "m": 60,
        "h": 3600,
        "d": 86400,
    }
    if unit not in factors:
        raise ValueError(f"unsupported window unit: {unit}")
    return number * factors[unit]


def parse_timeframes(labels: Iterable[str]) -> dict[str, int]:
    timeframes: dict[str, int] = {}
    for label in labels:
        label = label.strip()
        if not label:
            continue
        timeframes[label] = parse_window_seconds(label)
    if not timeframes:
        raise ValueError("at least one candle timeframe is required")
    return timeframes


def bucket_start(timeframe_seconds: int, epoch: int) -> int:
    return (int(epoch) // timeframe_seconds) * timeframe_seconds


def make_bucket(timeframe_seconds: int, epoch: int) -> Candle:
    open_time = bucket_start(timeframe_seconds, epoch)
    return Candle(open_time=open_time, close_time=open_time + timeframe_seconds)


def update_bucket(candle: Candle, price: float) -> None:
    if candle.open is None or candle.high is None or candle.low is None:
        candle.open = price
        candle.high = price
        candle.low = price
        candle.close = price
        return

    candle.high = max(candle.high, price)
    candle.low = min(candle.low, price)
    candle.close = price


def process_tick(
    price: float,
    epoch: int,
    active_candles: dict[str, Candle],
    timeframes: Mapping[str, int] = DEFAULT_TIMEFRAMES,
) -> dict[str, Candle]:
    """Advance every timeframe's active candle by one tick.

    Returns the candles that closed on this tick, keyed by label. A tick
    landing after a gap closes the stale candle once and opens the bucket
    containing the tick; buckets skipped by the gap are never emitted.
    """
    closed: dict[str, Candle] = {}
    for label, seconds in timeframes.items():
        candle = active_candles.get(label)
        if candle is None:
            candle = make_bucket(seconds, epoch)
            active_candles[label] = candle

        if epoch >= candle.close_time:
            if not candle.is_empty:
                closed[label] = candle
            candle = make_bucket(seconds, epoch)
            active_candles[label] = candle

        update_bucket(candle, price)
    return closed


def build_historical(
    ticks: Iterable[Tick],
    timeframes: Mapping[str, int] = DEFAULT_TIMEFRAMES,
) -> dict[str, list[Candle]]:
    """Replay a complete tick history into finished candles per timeframe.

    The bucket holding the last tick is still forming and is left out.
    """
    builders: dict[str, Candle | None] = {label: None for label in timeframes}
    result: dict[str, list[Candle]] = {label: [] for label in timeframes}

    for tick in ticks:
        for label, seconds in timeframes.items():
            builder = builders[label]
            if builder is None or builder.open_time != bucket_start(seconds, tick.epoch):
                if builder is not None and not builder.is_empty:
                    result[label].append(builder)
                builder = make_bucket(seconds, tick.epoch)
                builders[label] = builder
            update_bucket(builder, tick.price)

    return result


class CandleAggregator:
    def __init__(self, timeframes: Mapping[str, int] | None = None) -> None:
        resolved = dict(DEFAULT_TIMEFRAMES if timeframes is None else timeframes)
        if not resolved:
            raise ValueError("CandleAggregator requires at least one timeframe")
        for label, seconds in resolved.items():
            if seconds <= 0:
                raise ValueError(f"timeframe {label} must be > 0 seconds")
        self.timeframes = resolved
        self.active: dict[str, Candle] = {}

    def seed(self, epoch: int) -> None:
        self.active = {
            label: make_bucket(seconds, epoch)
            for label, seconds in self.timeframes.items()
        }

    def reset(self) -> None:
        self.active = {}

    def process_tick(self, price: float, epoch: int) -> dict[str, Candle]:
        return process_tick(price, epoch, self.active, self.timeframes)

    def build_historical(self, ticks: Iterable[Tick]) -> dict[str, list[Candle]]:
        return build_historical(ticks, self.timeframes)

    def forming(self) -> dict[str, Candle]:
        return {
            label: candle
            for label, candle in self.active.items()
            if not candle.is_empty
        }

    def countdowns(self, epoch: int) -> dict[str, Countdown]:
        result: dict[str, Countdown] = {}
        for label, seconds in self.timeframes.items():
            candle = self.active.get(label)
            if candle is None:
                continue
            left = candle.close_time - epoch
            result[label] = Countdown(
                remaining=max(0, left),
                total=seconds,
                pct=max(0.0, left / seconds),
            )
        return result
