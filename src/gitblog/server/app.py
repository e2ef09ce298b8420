from __future__ import annotations

import asyncio
import json
import logging
from functools import partial
from typing import Optional

from aiohttp import web

from gitblog.errors import FetchFailed, GitblogError, InvalidIdentifier, NotFound, UpstreamTimeout
from gitblog.logging import log_scope
from gitblog.service import BlogService

logger = logging.getLogger(__name__)

SERVICE_KEY = web.AppKey("service", BlogService)

_dumps = partial(json.dumps, indent=2)


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status, dumps=_dumps)


def status_for(error: GitblogError) -> int:
    if isinstance(error, InvalidIdentifier):
        return 400
    if isinstance(error, NotFound):
        return 404
    if isinstance(error, UpstreamTimeout):
        return 504
    if isinstance(error, FetchFailed):
        return 502
    return 400


async def _health(_: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


async def _favicon(_: web.Request) -> web.Response:
    return web.Response(status=404)


async def _missing_repo(_: web.Request) -> web.Response:
    return _error(400, "Repository identifier is required, e.g. /owner/name")


async def _blog(request: web.Request) -> web.Response:
    identifier = f"{request.match_info['owner']}/{request.match_info['name']}"
    service = request.app[SERVICE_KEY]
    with log_scope(identifier):
        try:
            payload = await service.build_payload(identifier)
        except GitblogError as e:
            status = status_for(e)
            logger.warning("Request failed. status=%s error=%s", status, e)
            return _error(status, str(e))
    return web.json_response(payload, dumps=_dumps)


async def _on_startup(app: web.Application) -> None:
    await app[SERVICE_KEY].start()


async def _on_cleanup(app: web.Application) -> None:
    await app[SERVICE_KEY].stop()


def create_app(service: BlogService) -> web.Application:
    """Create the aiohttp application serving blog payloads."""
    app = web.Application()
    app[SERVICE_KEY] = service
    app.router.add_get("/", _missing_repo)
    app.router.add_get("/health", _health)
    app.router.add_get("/favicon.ico", _favicon)
    app.router.add_get("/{owner}", _missing_repo)
    app.router.add_get("/{owner}/{name}", _blog)
    app.on_startup.append(_on_startup)
    app.on_cleanup.append(_on_cleanup)
    return app


async def run_server(
    service: BlogService,
    *,
    host: str,
    port: int,
    run_seconds: Optional[float] = None,
) -> None:  # pragma: no cover - integration path
    runner = web.AppRunner(create_app(service))
    await runner.setup()
    site = web.TCPSite(runner, host=host, port=port)
    await site.start()
    logger.info("HTTP server listening. host=%s port=%s", host, port)
    try:
        if run_seconds is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(run_seconds)
    finally:
        await runner.cleanup()
        logger.info("HTTP server stopped.")
