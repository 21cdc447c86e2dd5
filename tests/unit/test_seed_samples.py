import asyncio

from src.touch_edge.models import Tick
from src.touch_edge.samples import SampleRepository
from src.touch_edge.seed_samples import download_history, seed_store
from tests.helpers import walk_prices


class PagedHistoryTicker:
    def __init__(self, ticks: list[Tick], page_size: int) -> None:
        self.symbol = "1HZ100V"
        self.ticks = ticks
        self.page_size = page_size
        self.requests: list[tuple[int, int]] = []

    async def fetch_history(self, seconds: int = 3600, end: int | None = None) -> list[Tick]:
        self.requests.append((seconds, end))
        window = [t for t in self.ticks if end - seconds <= t.epoch <= end]
        return window[-self.page_size :]


def _history() -> list[Tick]:
    return [Tick(9001 + i, price) for i, price in enumerate(walk_prices(1000))]


def test_download_history_pages_backwards_until_covered() -> None:
    ticker = PagedHistoryTicker(_history(), page_size=400)

    ticks = asyncio.run(download_history(ticker, 1000, now=10_000))

    assert ticker.requests == [(1000, 10_000), (600, 9600), (200, 9200)]
    assert [t.epoch for t in ticks] == list(range(9001, 10_001))


def test_download_history_stops_on_empty_page() -> None:
    ticker = PagedHistoryTicker([], page_size=400)

    assert asyncio.run(download_history(ticker, 1000, now=10_000)) == []
    assert len(ticker.requests) == 1


def test_seed_store_writes_labelled_rows(tmp_path) -> None:
    db_path = str(tmp_path / "data" / "ticks.db")
    ticker = PagedHistoryTicker(_history(), page_size=400)

    inserted = asyncio.run(seed_store(ticker, db_path, 1000, now=10_000))

    repository = SampleRepository(db_path)
    assert inserted == 1000 - 60 - 120
    assert repository.available() is True
    assert repository.count("1HZ100V") == inserted
