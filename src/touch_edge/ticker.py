from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable
from typing import AsyncIterator

import websockets

from .models import Tick

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 30.0
HISTORY_PAGE_SIZE = 5000


def reconnect_delay(attempt: int) -> float:
    return min(MAX_BACKOFF_SECONDS, float(2**attempt))


class DerivTickerClient:
    def __init__(
        self,
        symbol: str,
        ws_url: str = "wss://ws.derivws.com/websockets/v3",
        app_id: int = 1089,
        ping_interval_seconds: int = 30,
        history_timeout_seconds: float = 15.0,
        on_reconnect: Callable[[], None] | None = None,
        api_token: str | None = None,
    ) -> None:
        self.symbol = symbol
        self.ws_url = ws_url
        self.app_id = app_id
        self.ping_interval_seconds = ping_interval_seconds
        self.history_timeout_seconds = history_timeout_seconds
        self.on_reconnect = on_reconnect
        self.api_token = api_token

    @property
    def url(self) -> str:
        return f"{self.ws_url}?app_id={self.app_id}"

    async def stream_ticks(self) -> AsyncIterator[Tick]:
        attempt = 0
        connected_once = False
        while True:
            try:
                logger.info("[Deriv WS] Connecting: %s", self.symbol)
                async with websockets.connect(
                    self.url,
                    ping_interval=self.ping_interval_seconds,
                ) as ws:
                    if connected_once and self.on_reconnect is not None:
                        self.on_reconnect()
                    connected_once = True
                    logger.info("[Deriv WS] Connected")
                    if self.api_token:
                        await ws.send(json.dumps({"authorize": self.api_token}))
                        self._check_authorize(await ws.recv())
                    await ws.send(json.dumps({"ticks": self.symbol, "subscribe": 1}))
                    async for raw in ws:
                        tick = self._parse(raw)
                        if tick is None:
                            continue
                        attempt = 0
                        yield tick
                delay = reconnect_delay(attempt)
                logger.warning("[Deriv WS] Connection closed by server; reconnecting in %.0fs", delay)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                delay = reconnect_delay(attempt)
                logger.warning("[Deriv WS] Error: %s; reconnecting in %.0fs", exc, delay)
            attempt += 1
            await asyncio.sleep(delay)

    async def fetch_history(self, seconds: int = 3600, end: int | None = None) -> list[Tick]:
        end = end if end is not None else int(time.time())
        request = {
            "ticks_history": self.symbol,
            "start": end - seconds,
            "end": end,
            "style": "ticks",
            "count": HISTORY_PAGE_SIZE,
        }
        try:
            async with asyncio.timeout(self.history_timeout_seconds):
                async with websockets.connect(self.url) as ws:
                    await ws.send(json.dumps(request))
                    raw = await ws.recv()
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.warning("[Deriv WS] History fetch failed: %s", exc)
            return []

        return self._parse_history(raw)

    def _check_authorize(self, raw: str | bytes) -> None:
        data = json.loads(raw)
        error = data.get("error") if isinstance(data, dict) else None
        if error:
            message = error.get("message") if isinstance(error, dict) else error
            raise RuntimeError(f"authorize failed: {message}")
        if not isinstance(data, dict) or data.get("msg_type") != "authorize":
            raise RuntimeError("authorize failed: unexpected response")
        logger.info("[Deriv WS] Authorized")

    def _parse_history(self, raw: str | bytes) -> list[Tick]:
        try:
            data = json.loads(raw)
        except ValueError:
            return []
        if not isinstance(data, dict):
            return []

        error = data.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else error
            logger.warning("[Deriv WS] History error: %s", message)
            return []

        history = data.get("history")
        if not isinstance(history, dict):
            return []
        times = history.get("times")
        prices = history.get("prices")
        if not isinstance(times, list) or not isinstance(prices, list):
            return []

        ticks: list[Tick] = []
        for epoch, price in zip(times, prices):
            try:
                ticks.append(Tick(epoch=int(epoch), price=float(price)))
            except (TypeError, ValueError):
                continue
        return ticks

    def _parse(self, raw: str | bytes) -> Tick | None:
        try:
            data = json.loads(raw)
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None

        error = data.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else error
            logger.error("[Deriv WS] API error: %s", message)
            return None

        if data.get("msg_type") != "tick":
            return None
        tick = data.get("tick")
        if not isinstance(tick, dict):
            return None

        symbol = tick.get("symbol")
        if symbol is not None and symbol != self.symbol:
            return None

        epoch = tick.get("epoch")
        quote = tick.get("quote")
        if epoch is None or quote is None:
            return None

        try:
            return Tick(epoch=int(epoch), price=float(quote))
        except (TypeError, ValueError):
            return None
