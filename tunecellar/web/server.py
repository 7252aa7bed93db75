"""
Web Server Module for Tunecellar.

This module provides the WebServer class that creates and manages the FastAPI
application, registers all routes and serves it with uvicorn.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import uvicorn
from fastapi import FastAPI

from tunecellar.web.routes.api import register_api_routes

if TYPE_CHECKING:
    from tunecellar.core.db.pool import PoolRegistry
    from tunecellar.core.user_db import UserDb
    from tunecellar.ingest.wake import WakeSignal

logger = logging.getLogger(__name__)


class WebServer:
    """
    FastAPI-based web server for Tunecellar.

    Provides the upload endpoint feeding the ingestion pipeline and a few
    inspection endpoints.
    """

    def __init__(
        self,
        *,
        user_db: UserDb,
        pools: PoolRegistry,
        wake: WakeSignal,
        staging_dir: Path,
        default_user: str,
    ) -> None:
        """
        Initialize the WebServer.

        Args:
            user_db: System DB (users, pending uploads)
            pools: Per-user music DB pools
            wake: Wake signal of the ingestion scheduler
            staging_dir: Where uploads are staged
            default_user: User assumed when a request names none
        """
        self.user_db = user_db
        self.pools = pools
        self.wake = wake

        self.app = FastAPI(
            title="Tunecellar",
            description="Personal media library server",
            version="0.1.0",
        )

        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._host = "0.0.0.0"
        self._port = 8080

        self._register_routes(staging_dir=staging_dir, default_user=default_user)

    def _register_routes(self, *, staging_dir: Path, default_user: str) -> None:
        """Register all routes with the FastAPI app."""

        @self.app.get("/health")
        async def health_check() -> dict[str, str]:
            """Health check endpoint."""
            return {"status": "ok", "server": "tunecellar"}

        register_api_routes(
            self.app,
            user_db=self.user_db,
            pools=self.pools,
            wake=self.wake,
            staging_dir=staging_dir,
            default_user=default_user,
        )

    async def start(self, host: str = "0.0.0.0", port: int = 8080) -> None:
        """
        Start the web server in the background.

        Args:
            host: Host address to bind to
            port: Port to listen on
        """
        self._host = host
        self._port = port

        config = uvicorn.Config(
            self.app,
            host=host,
            port=port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)
        self._serve_task = asyncio.create_task(self._server.serve())

        logger.info("Web server started on http://%s:%d", host, port)

    async def stop(self) -> None:
        """Stop the web server and wait for in-flight requests to finish."""
        if self._server is not None:
            self._server.should_exit = True
            self._server = None

        if self._serve_task is not None:
            try:
                await self._serve_task
            except Exception as e:
                logger.warning("Web server exited with an error: %s", e)
            self._serve_task = None

        logger.info("Web server stopped")

    @property
    def port(self) -> int:
        return self._port

    @property
    def host(self) -> str:
        return self._host
