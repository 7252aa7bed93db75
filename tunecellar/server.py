"""
Tunecellar Server - Main Server Module

This module contains the TunecellarServer class that wires the components
together and manages the application lifecycle.
"""

import asyncio
import logging
import signal

from tunecellar.config import Settings, get_settings
from tunecellar.core.db.pool import PoolRegistry
from tunecellar.core.user_db import UserDb
from tunecellar.ingest.scheduler import IngestScheduler
from tunecellar.ingest.wake import WakeSignal
from tunecellar.web.server import WebServer

logger = logging.getLogger(__name__)


class TunecellarServer:
    """
    Main Tunecellar server that coordinates all components.

    The server manages:
    - the system DB (users, pending uploads)
    - the per-user music DB pool registry
    - the ingestion scheduler task and its wake signal
    - the web server (uploads + inspection endpoints)

    Shutdown order: web server (no new uploads) -> wake signal closed ->
    scheduler finishes its last rescan -> music DB pools -> system DB.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        storage = self.settings.storage
        database = self.settings.database

        self.user_db = UserDb(
            storage.user_db_path,
            pool_size=database.pool_size,
            busy_timeout=database.busy_timeout,
        )
        self.pools = PoolRegistry(
            storage.users_dir,
            pool_size=database.pool_size,
            busy_timeout=database.busy_timeout,
        )
        self.wake = WakeSignal()
        self.scheduler = IngestScheduler(
            user_db=self.user_db,
            pools=self.pools,
            wake=self.wake,
            staging_dir=storage.staging_dir,
            users_dir=storage.users_dir,
            max_concurrency=self.settings.ingest.max_concurrency,
        )
        self.web_server = WebServer(
            user_db=self.user_db,
            pools=self.pools,
            wake=self.wake,
            staging_dir=storage.staging_dir,
            default_user=self.settings.default_user,
        )

        self._running = False
        self._shutdown_event: asyncio.Event | None = None
        self._scheduler_task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        """Start all server components."""
        storage = self.settings.storage
        logger.info("Starting Tunecellar server (data dir: %s)", storage.data_dir)

        self._running = True
        self._shutdown_event = asyncio.Event()

        storage.staging_dir.mkdir(parents=True, exist_ok=True)
        storage.users_dir.mkdir(parents=True, exist_ok=True)

        await self.user_db.open()
        await self.user_db.ensure_schema()
        for user in self.settings.users:
            if await self.user_db.register_user(user):
                logger.info("Registered user %s", user)

        self._scheduler_task = asyncio.create_task(self.scheduler.run())

        await self.web_server.start(host=self.settings.web.host, port=self.settings.web.port)

        logger.info("Tunecellar server started successfully")

    async def stop(self) -> None:
        """Stop all server components gracefully."""
        if not self._running:
            return

        logger.info("Stopping Tunecellar server...")
        self._running = False

        await self.web_server.stop()

        # Closing the wake signal is the scheduler's only exit.
        await self.wake.close()
        if self._scheduler_task is not None:
            await self._scheduler_task
            self._scheduler_task = None

        await self.pools.close_all()
        await self.user_db.close()

        if self._shutdown_event:
            self._shutdown_event.set()

        logger.info("Tunecellar server stopped")

    async def run(self) -> None:
        """
        Run the server until shutdown is requested.

        This method starts all components and waits for a shutdown signal
        (SIGINT or SIGTERM).
        """
        await self.start()

        loop = asyncio.get_running_loop()

        def handle_signal() -> None:
            logger.info("Received shutdown signal")
            if self._shutdown_event:
                self._shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, handle_signal)
            except NotImplementedError:
                # Signal handlers not supported on Windows
                pass

        if self._shutdown_event:
            await self._shutdown_event.wait()

        await self.stop()

    @property
    def is_running(self) -> bool:
        """Check if the server is currently running."""
        return self._running
