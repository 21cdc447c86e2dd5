from __future__ import annotations

import asyncio

import uvicorn

from .api import create_app
from .broadcast import Broadcaster
from .config import load_config
from .engine import TouchEdgeProcess
from .main import run


async def serve() -> None:
    config = load_config()
    process = TouchEdgeProcess(config)
    broadcaster = Broadcaster()

    server = uvicorn.Server(
        uvicorn.Config(
            app=create_app(process, broadcaster),
            host="0.0.0.0",
            port=config.api_port,
            log_level="info",
        )
    )

    async with asyncio.TaskGroup() as tg:
        tg.create_task(run(process, broadcaster, config))
        tg.create_task(server.serve())


if __name__ == "__main__":
    asyncio.run(serve())
