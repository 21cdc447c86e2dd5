from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import Body, FastAPI, HTTPException, WebSocket, WebSocketDisconnect

from .broadcast import Broadcaster
from .engine import TouchEdgeProcess
from .messages import ConfigMessage, UpdateConfigMessage, encode

logger = logging.getLogger(__name__)


async def _drain(websocket: WebSocket, queue: asyncio.Queue[str]) -> None:
    while True:
        payload = await queue.get()
        await websocket.send_text(payload)


async def _stop_sender(sender: asyncio.Task[None]) -> None:
    sender.cancel()
    results = await asyncio.gather(sender, return_exceptions=True)
    for result in results:
        if isinstance(result, Exception):
            logger.warning("[UI] Client send failed: %s", result)


def create_app(process: TouchEdgeProcess, broadcaster: Broadcaster) -> FastAPI:
    app = FastAPI(title="Touch Edge API", version="0.1.0")
    app.state.process = process
    app.state.broadcaster = broadcaster

    @app.get("/healthz")
    async def healthz() -> dict:
        return {"ok": True}

    @app.get("/status")
    async def status() -> dict:
        latest = process.tick_buffer.latest()
        return {
            "symbol": process.symbol,
            "buffered_ticks": len(process.tick_buffer),
            "latest_tick": {"epoch": latest.epoch, "price": latest.price} if latest else None,
            "has_empirical": process.probability.has_empirical,
            **process.state.snapshot(),
        }

    @app.get("/analytics")
    async def analytics() -> dict:
        message = process.latest_analytics
        if message is None:
            message = process.analytics()
        if message is None:
            raise HTTPException(status_code=404, detail="no ticks received yet")
        return message.model_dump(mode="json")

    @app.get("/candles")
    async def candles() -> dict:
        return process.history_message().data.model_dump(mode="json")["candles"]

    @app.post("/config")
    async def update_config(payload: dict[str, Any] = Body(...)) -> dict:
        message = UpdateConfigMessage.model_validate({**payload, "type": "update_config"})
        applied = process.state.apply_update(message)
        config_message = process.config_message()
        if applied:
            broadcaster.publish(config_message)
        return {"applied": applied, "parameters": config_message.data.model_dump(mode="json")}

    @app.websocket("/ws")
    async def stream(websocket: WebSocket) -> None:
        await websocket.accept()
        queue = broadcaster.subscribe()
        process.state.client_connected()
        logger.info("[UI] Client connected")
        sender: asyncio.Task[None] | None = None
        try:
            for message in (process.config_message(), process.symbol_message(), process.history_message()):
                await websocket.send_text(encode(message))
            sender = asyncio.create_task(_drain(websocket, queue))
            while True:
                raw = await websocket.receive_text()
                for reply in process.handle_inbound(raw):
                    if isinstance(reply, ConfigMessage):
                        broadcaster.publish(reply)
                    else:
                        await websocket.send_text(encode(reply))
        except WebSocketDisconnect:
            logger.info("[UI] Client disconnected")
        finally:
            if sender is not None:
                await _stop_sender(sender)
            broadcaster.unsubscribe(queue)
            process.state.client_disconnected()

    return app
