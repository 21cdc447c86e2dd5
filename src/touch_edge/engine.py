from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import asdict
from typing import assert_never

from .candles import CandleAggregator
from .config import Config
from .edge import EdgeEvaluator
from .messages import (
    AnalyticsMessage,
    AnalyticsPayload,
    CandleClosedMessage,
    CandlePayload,
    CandleUpdateMessage,
    ConfigMessage,
    CountdownMessage,
    CountdownPayload,
    HistoryMessage,
    HistoryPayload,
    LiveParametersPayload,
    OutboundMessage,
    RequestHistoryMessage,
    ServerStats,
    SymbolMessage,
    TickMessage,
    TickPayload,
    UpdateConfigMessage,
    parse_inbound,
)
from .models import Tick
from .probability import ProbabilityEngine, ProbabilityEstimate
from .samples import FEATURE_WINDOW, SampleRepository, microstructure_features
from .state import LiveParameters, SessionState
from .tick_store import TickBuffer
from .volatility import VolatilityEngine

logger = logging.getLogger(__name__)


class TouchEdgeProcess:
    """Owns every live component for one symbol.

    All mutation happens through `prefill`, `on_tick` and `on_reconnect`,
    driven by a single tick stream.
    """

    def __init__(
        self,
        config: Config,
        *,
        repository: SampleRepository | None = None,
        state: SessionState | None = None,
    ) -> None:
        self.config = config
        self.symbol = config.symbol
        self.tick_buffer = TickBuffer(config.max_tick_history)
        self.candles = CandleAggregator(config.candle_timeframes)
        self.volatility = VolatilityEngine(
            self.tick_buffer,
            windows=config.vol_windows,
            short_window=config.vol_short_window,
            baseline_window=config.vol_baseline_window,
            momentum_window=config.momentum_window,
        )
        self.probability = ProbabilityEngine(
            config.symbol,
            self.volatility,
            repository if repository is not None else SampleRepository(config.sample_db_path),
            horizon_ticks=config.touch_window_ticks,
            short_window=config.vol_short_window,
            theoretical_weight=config.theoretical_weight,
            min_samples=config.min_empirical_samples,
        )
        self.edge = EdgeEvaluator(
            self.volatility,
            warmup_ticks=config.warmup_ticks,
            low_sample_threshold=config.low_sample_warning,
        )
        self.state = state or SessionState(
            LiveParameters(
                barrier=config.default_barrier,
                payout_pct=config.default_payout_pct,
                direction="down" if config.default_direction == "down" else "up",
            )
        )
        self._latest_analytics: AnalyticsMessage | None = None

    @property
    def latest_analytics(self) -> AnalyticsMessage | None:
        return self._latest_analytics

    def prefill(self, ticks: Iterable[Tick]) -> HistoryMessage:
        accepted = 0
        for tick in ticks:
            if self.tick_buffer.append(tick.epoch, tick.price):
                accepted += 1

        latest = self.tick_buffer.latest()
        self.state.record_prefill(accepted, latest.epoch if latest is not None else None)
        self.volatility.update()

        self.candles.reset()
        for tick in self.tick_buffer.all():
            self.candles.process_tick(tick.price, tick.epoch)

        history = self.history_message()
        logger.info(
            "[System] History ready: ticks=%s candles=%s",
            accepted,
            {label: len(items) for label, items in history.data.candles.items()},
        )
        return history

    def on_tick(self, epoch: int, price: float) -> list[OutboundMessage]:
        if not self.tick_buffer.append(epoch, price):
            return []

        self.state.record_tick(epoch, self.config.gap_threshold_seconds)
        self.volatility.update()
        closed = self.candles.process_tick(price, epoch)

        messages: list[OutboundMessage] = [TickMessage(data=TickPayload(time=epoch, value=price))]
        for label, candle in closed.items():
            messages.append(
                CandleClosedMessage(timeframe=label, data=CandlePayload.from_candle(candle))
            )
        for label, candle in self.candles.forming().items():
            messages.append(
                CandleUpdateMessage(timeframe=label, data=CandlePayload.from_candle(candle))
            )
        messages.append(
            CountdownMessage(
                data={
                    label: CountdownPayload.from_countdown(countdown)
                    for label, countdown in self.candles.countdowns(epoch).items()
                }
            )
        )
        return messages

    def on_reconnect(self) -> None:
        dropped = len(self.tick_buffer)
        self.tick_buffer.clear()
        self.candles.reset()
        self.volatility.reset()
        self.state.record_reconnect()
        logger.info("[System] Stream reconnected; dropped %s buffered ticks", dropped)

    def handle_inbound(self, raw: str | bytes | dict) -> list[OutboundMessage]:
        message = parse_inbound(raw)
        if message is None:
            return []

        match message:
            case UpdateConfigMessage():
                applied = self.state.apply_update(message)
                if applied:
                    logger.info("[UI] Parameters updated: %s", self.state.parameters.to_payload())
                return [self.config_message()]
            case RequestHistoryMessage():
                return [self.history_message()]
            case _:
                assert_never(message)

    def history_message(self) -> HistoryMessage:
        ticks = self.tick_buffer.all()
        candles = self.candles.build_historical(ticks)
        return HistoryMessage(
            data=HistoryPayload(
                ticks=[TickPayload.from_tick(tick) for tick in ticks],
                candles={
                    label: [CandlePayload.from_candle(candle) for candle in items]
                    for label, items in candles.items()
                },
            )
        )

    def config_message(self) -> ConfigMessage:
        return ConfigMessage(data=LiveParametersPayload(**self.state.parameters.to_payload()))

    def symbol_message(self) -> SymbolMessage:
        return SymbolMessage(data=self.symbol)

    def analytics(self) -> AnalyticsMessage | None:
        latest = self.tick_buffer.latest()
        if latest is None:
            return None
        params = self.state.parameters
        up = self.probability.estimate(params.barrier, latest.price, "up")
        down = self.probability.estimate(params.barrier, latest.price, "down")
        return self._build_analytics(latest, params, up, down)

    async def analytics_async(self) -> AnalyticsMessage | None:
        latest = self.tick_buffer.latest()
        if latest is None:
            return None
        params = self.state.parameters
        up = await self.probability.estimate_async(params.barrier, latest.price, "up")
        down = await self.probability.estimate_async(params.barrier, latest.price, "down")
        return self._build_analytics(latest, params, up, down)

    def _build_analytics(
        self,
        latest: Tick,
        params: LiveParameters,
        up: ProbabilityEstimate,
        down: ProbabilityEstimate,
    ) -> AnalyticsMessage:
        tick_count = self.state.tick_count
        warmup_ticks = self.config.warmup_ticks
        edge_up = self.edge.analyze(up, params.payout_pct, tick_count)
        edge_down = self.edge.analyze(down, params.payout_pct, tick_count)
        features = microstructure_features(self.tick_buffer.last_n(FEATURE_WINDOW + 1))

        message = AnalyticsMessage(
            data=AnalyticsPayload(
                symbol=self.symbol,
                price=latest.price,
                tick_count=tick_count,
                warmup_progress=min(tick_count / warmup_ticks, 1.0) if warmup_ticks > 0 else 1.0,
                warmup_done=tick_count >= warmup_ticks,
                volatility=self.volatility.get_snapshot().to_payload(),
                microstructure=asdict(features) if features is not None else None,
                direction=params.direction,
                barrier=params.barrier,
                payout_pct=params.payout_pct,
                active=(edge_up if params.direction == "up" else edge_down).to_payload(),
                up={"estimate": up.to_payload(), "edge": edge_up.to_payload()},
                down={"estimate": down.to_payload(), "edge": edge_down.to_payload()},
                server_stats=ServerStats(**self.state.server_stats()),
            )
        )
        self._latest_analytics = message
        return message
