#!/usr/bin/env python3
"""
Immich MCP Server
Exposes an Immich photo library to MCP clients.

Setup:
  1. pip install immich-mcp
  2. Create an API key in Immich under Account Settings > API Keys
  3. Set IMMICH_BASE_URL and IMMICH_API_KEY (environment or .env)
  4. Run `immich-mcp` for streamable HTTP on MCP_PORT (default 5000),
     or `immich-mcp --stdio` for desktop clients
"""

import argparse
import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import AsyncIterator, List, Optional

import uvicorn
from mcp.server.fastmcp import FastMCP
from starlette.applications import Starlette

from immich_mcp.client import ImmichClient
from immich_mcp.config import Settings, settings as default_settings
from immich_mcp.logging_config import setup_logging
from immich_mcp.sessions import UploadSessionManager
from immich_mcp.tools import build_toolsets
from immich_mcp.upload_endpoint import UploadEndpoint, health

logger = logging.getLogger(__name__)


@dataclass
class Gateway:
    """A configured FastMCP server plus the state it owns."""

    mcp: FastMCP
    client: ImmichClient
    settings: Settings
    sessions: Optional[UploadSessionManager]
    tool_names: List[str]

    def http_app(self) -> Starlette:
        """Streamable-HTTP app; the session sweep runs inside its lifespan."""
        app = self.mcp.streamable_http_app()
        if self.sessions is None:
            return app

        sessions = self.sessions
        inner = app.router.lifespan_context

        @contextlib.asynccontextmanager
        async def lifespan(app: Starlette) -> AsyncIterator[None]:
            async with sessions.running():
                async with inner(app):
                    yield

        app.router.lifespan_context = lifespan
        return app

    async def serve_http(self) -> None:
        config = uvicorn.Config(
            self.http_app(),
            host=self.settings.MCP_HOST,
            port=self.settings.MCP_PORT,
            log_config=None,
        )
        logger.info("MCP endpoint: http://%s:%d/mcp", self.settings.MCP_HOST, self.settings.MCP_PORT)
        logger.info("Upload endpoint: %s/upload/{session_id}", self.settings.upload_base_url)
        await uvicorn.Server(config).serve()

    def run_stdio(self) -> None:
        self.mcp.run("stdio")


def create_server(
    settings: Optional[Settings] = None,
    client: Optional[ImmichClient] = None,
    sessions: Optional[UploadSessionManager] = None,
    enable_uploads: bool = True,
) -> Gateway:
    """Wire client, session store, upload route and tools into one server.

    With ``enable_uploads=False`` (stdio) neither the upload tools nor the
    upload route exist, since nothing could reach the route.
    """
    settings = settings or default_settings
    client = client or ImmichClient.from_settings(settings)
    mcp = FastMCP(settings.SERVICE_NAME, host=settings.MCP_HOST, port=settings.MCP_PORT)

    if enable_uploads:
        sessions = sessions or UploadSessionManager(
            session_timeout=timedelta(minutes=settings.UPLOAD_SESSION_TIMEOUT_MINUTES),
            sweep_interval=timedelta(seconds=settings.SESSION_SWEEP_INTERVAL_SECONDS),
        )
        endpoint = UploadEndpoint(sessions, client)
        mcp.custom_route("/upload/{session_id}", methods=["POST"])(endpoint.handle)
    else:
        sessions = None
    mcp.custom_route("/health", methods=["GET"])(health)

    tool_names: List[str] = []
    for toolset in build_toolsets(client, settings, sessions):
        tool_names.extend(toolset.register(mcp))
    logger.debug("Registered %d tools", len(tool_names))
    return Gateway(mcp=mcp, client=client, settings=settings, sessions=sessions, tool_names=tool_names)


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="immich-mcp", description="MCP server for Immich")
    parser.add_argument(
        "--stdio", action="store_true", help="Serve over stdio instead of streamable HTTP"
    )
    args = parser.parse_args(argv)

    setup_logging(default_settings)
    default_settings.require_upstream()
    logger.info("Starting %s against %s", default_settings.SERVICE_NAME, default_settings.immich_base_url)

    gateway = create_server(default_settings, enable_uploads=not args.stdio)
    if args.stdio:
        gateway.run_stdio()
    else:
        asyncio.run(gateway.serve_http())


# ─── Entry Point ─────────────────────────────────────────────────────────────

if __name__ == "__main__":
    main()
