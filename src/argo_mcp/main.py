"""CLI entry point for the Argo Workflows MCP server."""

from __future__ import annotations

import asyncio
import logging

import uvicorn

from .config import load_settings
from .logging import configure_logging
from .server import build_server

logger = logging.getLogger(__name__)


async def _run() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    logger.info(
        "Starting Argo MCP server: transport=%s argo=%s", settings.transport_type, settings.argo_server_url
    )

    mcp, app, client = await build_server(settings)
    try:
        if settings.transport_type == "stdio":
            await mcp.run_stdio_async()
            return
        if not app:
            raise RuntimeError(f"HTTP app unavailable for transport={settings.transport_type}")
        logger.info(
            "MCP endpoint at http://%s:%s%s", settings.http_host, settings.http_port, settings.http_path
        )
        config = uvicorn.Config(
            app,
            host=settings.http_host,
            port=settings.http_port,
            log_level=settings.log_level.lower(),
        )
        server = uvicorn.Server(config)
        await server.serve()
    finally:
        await client.aclose()
        logger.info("Argo MCP server stopped")


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
