"""
PlayerHUD - Main Service Module

This module contains the HudService class that wires the bus connection,
the sync loop and the status server together and manages the application
lifecycle.
"""

import asyncio
import logging
import signal

from playerhud.bus.connection import BusConnector
from playerhud.bus.fetcher import MetadataFetcher
from playerhud.bus.locator import PlayerLocator
from playerhud.config import HudConfig
from playerhud.core import PlayerHudError
from playerhud.core.artwork import ArtworkCache
from playerhud.core.events import EventBus
from playerhud.core.sync import SyncLoop
from playerhud.web.server import StatusServer
from playerhud.web.view import NowPlayingView

logger = logging.getLogger(__name__)


class HudService:
    """
    Main PlayerHUD service that coordinates all components.

    The service manages:
    - The session bus connection (held for the whole process lifetime)
    - The sync loop polling the active MPRIS player
    - The artwork cache slot
    - The optional status server presenting the published state
    """

    def __init__(
        self,
        config: HudConfig | None = None,
        *,
        connector: BusConnector | None = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            config: Loaded configuration (defaults if omitted).
            connector: Bus connector; a session-bus connector if omitted.
        """
        self.config = config or HudConfig()
        self.connector = connector or BusConnector()

        self.event_bus = EventBus()
        self.view = NowPlayingView()

        self.artwork = ArtworkCache(
            self.config.cache_path,
            timeout=self.config.artwork_timeout,
            max_bytes=self.config.artwork_max_bytes,
        )

        # Created once the bus is connected
        self.sync_loop: SyncLoop | None = None
        self.web_server: StatusServer | None = None

        self._running = False
        self._shutdown_event: asyncio.Event | None = None
        self._sync_task: asyncio.Task[None] | None = None
        self._bus_watch_task: asyncio.Task[None] | None = None

        # Why the service shut itself down, re-raised by run()
        self._fatal_error: PlayerHudError | None = None

    async def start(self) -> None:
        """
        Start all components.

        Raises:
            BusConnectionError: If the session bus is unavailable. Nothing
                else has been started in that case.
        """
        logger.info("Starting PlayerHUD")
        self._fatal_error = None

        bus = await self.connector.connect()

        self._running = True
        self._shutdown_event = asyncio.Event()

        locator = PlayerLocator(
            bus,
            prefix=self.config.service_prefix,
            timeout=self.config.discovery_timeout,
        )
        fetcher = MetadataFetcher(bus, timeout=self.config.fetch_timeout)

        self.sync_loop = SyncLoop(
            locator,
            fetcher,
            self.artwork,
            event_bus=self.event_bus,
            interval=self.config.poll_interval,
            deadline=self.config.cycle_deadline,
        )

        await self.event_bus.subscribe("nowplaying.*", self.view.on_event)

        if self.config.web_enabled:
            self.web_server = StatusServer(self.view)
            await self.web_server.start(host=self.config.web_host, port=self.config.web_port)

        self._sync_task = asyncio.create_task(self.sync_loop.run())
        self._sync_task.add_done_callback(self._on_sync_done)
        self._bus_watch_task = asyncio.create_task(self._watch_bus())

        logger.info("PlayerHUD started (artwork cache: %s)", self.artwork.cache_path)

    def _on_sync_done(self, task: "asyncio.Task[None]") -> None:
        if task.cancelled() or task.exception() is None:
            return
        self._fail(PlayerHudError(f"sync loop crashed: {task.exception()}"))

    async def _watch_bus(self) -> None:
        try:
            await self.connector.wait_for_disconnect()
        except Exception as e:
            reason = f"session bus connection lost: {e}"
        else:
            reason = "session bus connection closed"

        if self._running:
            self._fail(PlayerHudError(reason))

    def _fail(self, error: PlayerHudError) -> None:
        """Record a fatal error and request shutdown."""
        logger.error("Shutting down: %s", error)
        if self._fatal_error is None:
            self._fatal_error = error
        if self._shutdown_event:
            self._shutdown_event.set()

    async def stop(self) -> None:
        """Stop all components gracefully."""
        if not self._running:
            return

        logger.info("Stopping PlayerHUD...")
        self._running = False

        if self.sync_loop is not None:
            self.sync_loop.stop()
        if self._sync_task is not None:
            if not self._sync_task.done():
                await self._sync_task
            self._sync_task = None

        if self.web_server is not None:
            await self.web_server.stop()
            self.web_server = None

        await self.artwork.aclose()
        if self.config.cleanup_on_exit:
            self.artwork.clear()

        if self._bus_watch_task is not None:
            self._bus_watch_task.cancel()
            self._bus_watch_task = None

        # Release the bus last, after nothing can call on it any more
        self.connector.disconnect()

        await self.event_bus.unsubscribe("nowplaying.*", self.view.on_event)

        if self._shutdown_event:
            self._shutdown_event.set()

        logger.info("PlayerHUD stopped")

    async def run(self) -> None:
        """
        Run the service until shutdown is requested.

        This method starts all components and waits for a shutdown signal
        (SIGINT or SIGTERM) or the loss of the bus connection.

        Raises:
            BusConnectionError: If the session bus is unavailable at startup.
            PlayerHudError: If the service stopped itself because the bus
                connection was lost or the sync loop crashed.
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

        if self._fatal_error is not None:
            raise self._fatal_error

    @property
    def is_running(self) -> bool:
        """Check if the service is currently running."""
        return self._running
