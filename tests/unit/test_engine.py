import pytest

from src.touch_edge.engine import TouchEdgeProcess
from src.touch_edge.messages import (
    AnalyticsMessage,
    CandleClosedMessage,
    CandleUpdateMessage,
    ConfigMessage,
    CountdownMessage,
    HistoryMessage,
    TickMessage,
)
from src.touch_edge.models import Tick
from src.touch_edge.samples import build_sample_rows, write_samples
from tests.helpers import make_config, walk_prices


def _process(tmp_path, **overrides) -> TouchEdgeProcess:
    overrides.setdefault("sample_db_path", str(tmp_path / "missing.db"))
    return TouchEdgeProcess(make_config(**overrides))


def test_on_tick_emits_tick_updates_and_countdown(tmp_path) -> None:
    process = _process(tmp_path, candle_timeframes={"5s": 5, "10s": 10})

    messages = process.on_tick(10001, 100.0)

    assert [type(m) for m in messages] == [
        TickMessage,
        CandleUpdateMessage,
        CandleUpdateMessage,
        CountdownMessage,
    ]
    countdown = messages[-1]
    assert countdown.data["5s"].remaining == 4
    assert countdown.data["10s"].remaining == 9


def test_on_tick_emits_closed_candle_on_boundary(tmp_path) -> None:
    process = _process(tmp_path, candle_timeframes={"5s": 5, "10s": 10})
    process.on_tick(10001, 100.0)
    process.on_tick(10003, 105.0)

    messages = process.on_tick(10006, 102.0)

    closed = [m for m in messages if isinstance(m, CandleClosedMessage)]
    assert len(closed) == 1
    assert closed[0].timeframe == "5s"
    assert closed[0].data.model_dump() == {
        "time": 10000,
        "open": 100.0,
        "high": 105.0,
        "low": 100.0,
        "close": 105.0,
    }


def test_rejected_tick_produces_nothing(tmp_path) -> None:
    process = _process(tmp_path)
    process.on_tick(10001, 100.0)

    assert process.on_tick(10001, 101.0) == []
    assert process.on_tick(10000, 101.0) == []
    assert process.state.tick_count == 1
    assert len(process.tick_buffer) == 1


def test_reconnect_purges_buffer_and_candles(tmp_path) -> None:
    process = _process(tmp_path, candle_timeframes={"5s": 5})
    process.on_tick(10001, 100.0)

    process.on_reconnect()
    messages = process.on_tick(10030, 90.0)

    assert len(process.tick_buffer) == 1
    assert not any(isinstance(m, CandleClosedMessage) for m in messages)
    assert process.state.server_stats()["reconnects"] == 1


def test_reconnect_restarts_warmup_and_trend(tmp_path) -> None:
    process = _process(tmp_path)
    for i, price in enumerate(walk_prices(400)):
        process.on_tick(1_700_000_000 + i, price)
    assert process.analytics().data.warmup_done is True

    process.on_reconnect()
    process.on_tick(1_700_001_000, 1000.0)
    data = process.analytics().data

    assert data.tick_count == 1
    assert data.warmup_done is False
    assert data.warmup_progress == pytest.approx(1 / 300)
    assert data.active["warnings"][0] == "Warmup: 1/300 ticks"
    assert data.volatility["vol_trend"] == "N/A"
    assert all(sigma is None for sigma in data.volatility["rolling_vol"].values())
    assert len(process.volatility._short_history) == 0  # noqa: SLF001


def test_prefill_rebuilds_active_candles(tmp_path) -> None:
    process = _process(tmp_path, candle_timeframes={"5s": 5})
    history = process.prefill(
        [Tick(10001, 100.0), Tick(10003, 105.0), Tick(10006, 102.0), Tick(10007, 90.0)]
    )

    assert isinstance(history, HistoryMessage)
    assert [c.time for c in history.data.candles["5s"]] == [10000]
    assert process.state.tick_count == 4

    messages = process.on_tick(10011, 95.0)
    closed = [m for m in messages if isinstance(m, CandleClosedMessage)]
    assert closed[0].data.model_dump() == {
        "time": 10005,
        "open": 102.0,
        "high": 102.0,
        "low": 90.0,
        "close": 90.0,
    }


def test_analytics_is_none_without_ticks(tmp_path) -> None:
    assert _process(tmp_path).analytics() is None


def test_analytics_theoretical_only_without_store(tmp_path) -> None:
    process = _process(tmp_path)
    for i, price in enumerate(walk_prices(400)):
        process.on_tick(1_700_000_000 + i, price)

    message = process.analytics()

    assert isinstance(message, AnalyticsMessage)
    data = message.data
    assert data.tick_count == 400
    assert data.warmup_progress == 1.0
    assert data.warmup_done is True
    assert data.direction == "up"
    assert data.active == data.up["edge"]
    assert data.up["estimate"]["theoretical"] is not None
    assert data.up["estimate"]["empirical"] is None
    assert data.active["sample_size"] == 0
    assert "Low sample size: 0" in data.active["warnings"]
    assert data.microstructure is not None
    assert data.volatility["vol_ratio"] is not None
    assert process.latest_analytics is message


def test_analytics_warmup_progress(tmp_path) -> None:
    process = _process(tmp_path, warmup_ticks=300)
    for i, price in enumerate(walk_prices(30)):
        process.on_tick(1_700_000_000 + i, price)

    data = process.analytics().data

    assert data.warmup_progress == 0.1
    assert data.warmup_done is False
    assert data.active["warnings"][0] == "Warmup: 30/300 ticks"
    assert data.up["estimate"]["combined"] is None


def test_analytics_blends_with_sample_store(tmp_path) -> None:
    db_path = str(tmp_path / "ticks.db")
    history = [Tick(1_600_000_000 + i, p) for i, p in enumerate(walk_prices(800))]
    write_samples(db_path, build_sample_rows("1HZ100V", history))
    process = _process(tmp_path, sample_db_path=db_path)
    for i, price in enumerate(walk_prices(400)):
        process.on_tick(1_700_000_000 + i, price)

    data = process.analytics().data
    estimate = data.up["estimate"]

    assert process.probability.has_empirical is True
    assert estimate["sample_size"] == 620
    assert estimate["combined"] == pytest.approx(0.6 * estimate["theoretical"] + 0.4 * estimate["empirical"])


def test_handle_inbound_updates_parameters(tmp_path) -> None:
    process = _process(tmp_path)

    replies = process.handle_inbound('{"type":"update_config","barrier":"4","direction":"bogus"}')

    assert len(replies) == 1
    assert isinstance(replies[0], ConfigMessage)
    assert replies[0].data.barrier == 4.0
    assert replies[0].data.direction == "up"


def test_handle_inbound_history_request_and_garbage(tmp_path) -> None:
    process = _process(tmp_path)

    assert process.handle_inbound("{{{") == []
    assert isinstance(process.handle_inbound({"type": "request_history"})[0], HistoryMessage)


def test_direction_selects_active_report(tmp_path) -> None:
    process = _process(tmp_path)
    for i, price in enumerate(walk_prices(100)):
        process.on_tick(1_700_000_000 + i, price)
    process.handle_inbound({"type": "update_config", "direction": "down"})

    data = process.analytics().data

    assert data.direction == "down"
    assert data.active == data.down["edge"]
