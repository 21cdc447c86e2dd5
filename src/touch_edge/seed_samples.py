from __future__ import annotations

import argparse
import asyncio
import logging
import time

from .config import load_config
from .models import Tick
from .samples import LABEL_HORIZON, SampleRepository, build_sample_rows, write_samples
from .ticker import DerivTickerClient

logger = logging.getLogger(__name__)

CHUNK_SECONDS = 3600


async def download_history(
    ticker: DerivTickerClient,
    total_seconds: int,
    *,
    chunk_seconds: int = CHUNK_SECONDS,
    now: int | None = None,
) -> list[Tick]:
    """Page backwards through tick history until `total_seconds` are covered."""
    end = now if now is not None else int(time.time())
    target = end - total_seconds
    by_epoch: dict[int, Tick] = {}

    while end > target:
        chunk = await ticker.fetch_history(min(chunk_seconds, end - target), end=end)
        if not chunk:
            logger.warning("[Seed] Empty history page ending at %s; stopping", end)
            break
        for tick in chunk:
            if tick.epoch > target:
                by_epoch[tick.epoch] = tick
        oldest = min(tick.epoch for tick in chunk)
        if oldest >= end:
            break
        end = oldest - 1
        logger.info("[Seed] Downloaded %s ticks so far", len(by_epoch))

    return [by_epoch[epoch] for epoch in sorted(by_epoch)]


async def seed_store(
    ticker: DerivTickerClient,
    db_path: str,
    total_seconds: int,
    *,
    horizon: int = LABEL_HORIZON,
    now: int | None = None,
) -> int:
    ticks = await download_history(ticker, total_seconds, now=now)
    inserted = write_samples(db_path, build_sample_rows(ticker.symbol, ticks, horizon=horizon))

    repository = SampleRepository(db_path)
    if repository.available():
        logger.info(
            "[Seed] %s: inserted %s rows, %s total in %s",
            ticker.symbol,
            inserted,
            repository.count(ticker.symbol),
            db_path,
        )
    return inserted


def main() -> None:
    config = load_config()
    parser = argparse.ArgumentParser(description="Download tick history and label it into the sample store")
    parser.add_argument("--symbol", default=config.symbol, help="Deriv symbol to download")
    parser.add_argument("--db-path", default=config.sample_db_path, help="SQLite file to write")
    parser.add_argument("--hours", type=float, default=24.0, help="How much history to download")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    ticker = DerivTickerClient(
        symbol=args.symbol,
        ws_url=config.deriv_ws_url,
        app_id=config.deriv_app_id,
        history_timeout_seconds=config.history_timeout_seconds,
    )
    inserted = asyncio.run(seed_store(ticker, args.db_path, int(args.hours * 3600)))
    print(f"inserted {inserted} rows into {args.db_path}")


if __name__ == "__main__":
    main()
