from __future__ import annotations

import argparse
import asyncio
import logging

from gitblog.config import YamlConfigLoader
from gitblog.config.models import AppConfig, ConfigLoadRequest
from gitblog.logging import init_logging
from gitblog.server.app import run_server
from gitblog.service import BlogService

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gitblog", description="Blog index service for GitHub repositories")
    parser.add_argument(
        "--config",
        default="data/config/config.yaml",
        help="Path to config.yaml (default: data/config/config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    # Command: serve
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP server")
    serve_parser.add_argument(
        "--run-seconds",
        type=float,
        default=None,
        help="Serve for N seconds then exit (useful for smoke testing).",
    )

    # Command: sweep
    subparsers.add_parser("sweep", help="Remove every expired snapshot under the cache root and exit")

    return parser


async def _load_config(args: argparse.Namespace) -> AppConfig:
    loader = YamlConfigLoader()
    request = ConfigLoadRequest(
        yaml_path=args.config,
    )
    return await loader.load(request)


async def _serve(args: argparse.Namespace) -> None:
    config = await _load_config(args)
    init_logging(config.logging)
    logger.info(
        "Starting application in serve mode. cache_root=%s ttl_ms=%s",
        config.cache.root_dir,
        config.cache.ttl_ms,
    )

    service = BlogService.from_config(config)
    await run_server(service, host=config.server.host, port=config.server.port, run_seconds=args.run_seconds)


async def _sweep(args: argparse.Namespace) -> None:
    config = await _load_config(args)
    init_logging(config.logging)

    service = BlogService.from_config(config)
    service.recover()
    removed = await service.sweeper.drain()
    logger.info("Sweep completed. removed=%d remaining=%d", len(removed), len(service.cache.jobs))


async def _main_async() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    if args.command == "serve":
        await _serve(args)
    elif args.command == "sweep":
        await _sweep(args)


def main() -> None:
    try:
        asyncio.run(_main_async())
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")


if __name__ == "__main__":
    main()
