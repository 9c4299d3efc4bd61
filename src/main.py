"""Entry point for the Twilio voice scripting server."""

from __future__ import annotations

import argparse
import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from api.twilio_routes import router as twilio_router
from calls.engine import CallEngine, InboundScript
from config.settings import Settings, get_settings
from integrations.ngrok import get_tunnel_info


def configure_logging() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logging.getLogger("twilio.http_client").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def create_app(engine: CallEngine | None = None) -> FastAPI:
    engine = engine or CallEngine.from_settings(get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await engine.start()
        yield
        await engine.stop()

    app = FastAPI(
        title="Twilio Voice Scripting",
        description="Runs top-to-bottom voice scripts against Twilio webhooks.",
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.include_router(twilio_router, prefix="/api")
    return app


app = create_app()


async def _serve(engine: CallEngine, port: int) -> tuple[uvicorn.Server, asyncio.Task[None]]:
    settings = get_settings()
    config = uvicorn.Config(
        create_app(engine),
        host=settings.host,
        port=port,
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)
    task = asyncio.create_task(server.serve())
    while not server.started:
        if task.done():
            task.result()
            raise RuntimeError("Server stopped during startup")
        await asyncio.sleep(0.05)
    return server, task


async def _public_endpoint(settings: Settings) -> tuple[str, int]:
    """Public URL and local port to serve on; an ngrok tunnel decides both when no URL is configured."""

    if settings.public_base_url:
        return settings.public_base_url, settings.port
    info = await get_tunnel_info(settings.ngrok_api_url)
    return info.public_url, info.local_port


async def run_script(
    script: Callable[..., Awaitable[Any]],
    *args: Any,
    inbound_script: InboundScript | None = None,
) -> Any:
    """Start the callback server, run ``script(engine, *args)`` and shut down afterwards."""

    settings = get_settings()
    server_url, port = await _public_endpoint(settings)
    engine = CallEngine.from_settings(settings, server_url=server_url, inbound_script=inbound_script)
    server, task = await _serve(engine, port)
    try:
        return await script(engine, *args)
    finally:
        server.should_exit = True
        await task


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve Twilio callbacks for inbound calls")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    configure_logging()
    settings = get_settings()
    server_url, port = asyncio.run(_public_endpoint(settings))
    engine = CallEngine.from_settings(settings, server_url=server_url)
    uvicorn.run(
        create_app(engine),
        host=args.host or settings.host,
        port=args.port or port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
