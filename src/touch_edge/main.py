from __future__ import annotations

import asyncio
import logging

from .broadcast import Broadcaster
from .config import Config, load_config
from .engine import TouchEdgeProcess
from .ticker import DerivTickerClient


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_ticker(config: Config, process: TouchEdgeProcess) -> DerivTickerClient:
    return DerivTickerClient(
        symbol=config.symbol,
        ws_url=config.deriv_ws_url,
        app_id=config.deriv_app_id,
        ping_interval_seconds=config.ws_ping_interval_seconds,
        history_timeout_seconds=config.history_timeout_seconds,
        on_reconnect=process.on_reconnect,
        api_token=config.deriv_api_token,
    )


async def run_tick_feed(
    process: TouchEdgeProcess,
    ticker: DerivTickerClient,
    broadcaster: Broadcaster,
    history_seconds: int,
) -> None:
    history = await ticker.fetch_history(history_seconds)
    if history:
        logger.info("[System] Pre-filling %s historical ticks", len(history))
        broadcaster.publish(process.prefill(history))

    async for tick in ticker.stream_ticks():
        broadcaster.publish_all(process.on_tick(tick.epoch, tick.price))


async def run_analytics_loop(
    process: TouchEdgeProcess,
    broadcaster: Broadcaster,
    interval_seconds: float,
) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        message = await process.analytics_async()
        if message is not None:
            broadcaster.publish(message)


async def run(
    process: TouchEdgeProcess | None = None,
    broadcaster: Broadcaster | None = None,
    config: Config | None = None,
) -> None:
    config = config or load_config()
    process = process or TouchEdgeProcess(config)
    broadcaster = broadcaster or Broadcaster()
    ticker = build_ticker(config, process)

    logger.info("[System] Connecting to Deriv for %s", config.symbol)
    async with asyncio.TaskGroup() as tg:
        tg.create_task(run_tick_feed(process, ticker, broadcaster, config.history_seconds))
        tg.create_task(run_analytics_loop(process, broadcaster, config.analytics_interval_seconds))


if __name__ == "__main__":
    asyncio.run(run())
