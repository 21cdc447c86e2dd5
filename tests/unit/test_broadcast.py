import asyncio
import json

from src.touch_edge.broadcast import Broadcaster
from src.touch_edge.messages import SymbolMessage


def test_publish_fans_out_to_every_subscriber() -> None:
    async def _run() -> None:
        broadcaster = Broadcaster()
        first = broadcaster.subscribe()
        second = broadcaster.subscribe()

        broadcaster.publish(SymbolMessage(data="1HZ100V"))

        assert json.loads(first.get_nowait()) == {"type": "symbol", "data": "1HZ100V"}
        assert json.loads(second.get_nowait()) == {"type": "symbol", "data": "1HZ100V"}

    asyncio.run(_run())


def test_slow_client_drops_oldest_messages() -> None:
    async def _run() -> None:
        broadcaster = Broadcaster(queue_size=2)
        queue = broadcaster.subscribe()

        broadcaster.publish_all([SymbolMessage(data=name) for name in ["a", "b", "c"]])

        assert queue.qsize() == 2
        assert json.loads(queue.get_nowait())["data"] == "b"
        assert json.loads(queue.get_nowait())["data"] == "c"

    asyncio.run(_run())


def test_unsubscribe_stops_delivery() -> None:
    async def _run() -> None:
        broadcaster = Broadcaster()
        queue = broadcaster.subscribe()
        broadcaster.unsubscribe(queue)

        broadcaster.publish(SymbolMessage(data="x"))

        assert queue.empty()
        assert broadcaster.client_count == 0

    asyncio.run(_run())
