"""
shelfplay Application.

Main orchestrator that wires together all components and manages lifecycle.
"""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Optional

from shelfplay.backends import AudioBackend, BackendFactory
from shelfplay.config import Config
from shelfplay.control import ControlServer
from shelfplay.library import LibraryError, LibraryStore
from shelfplay.playback import PlaybackController
from shelfplay.session import (
    JsonFileSnapshotStore,
    SessionPersistence,
    reconcile,
)

logger = logging.getLogger(__name__)


class ShelfPlay:
    """
    Main shelfplay application.

    Orchestrates all components:
    - Session persistence (JsonFileSnapshotStore, SessionPersistence)
    - Library (LibraryStore)
    - Audio backend (local or null)
    - Playback (PlaybackController)
    - Control API (ControlServer)

    Usage:
        config = load_config(...)
        app = ShelfPlay(config)
        await app.run()
    """

    def __init__(self, config: Config):
        """
        Initialize shelfplay.

        Args:
            config: Validated configuration
        """
        self._config = config
        self._is_running = False
        self._shutdown_event = asyncio.Event()

        # Components (initialized in start())
        self._session: Optional[SessionPersistence] = None
        self._library: Optional[LibraryStore] = None
        self._backend: Optional[AudioBackend] = None
        self._player: Optional[PlaybackController] = None
        self._server: Optional[ControlServer] = None

    async def start(self) -> None:
        """
        Start shelfplay and all components.

        Startup order:
        1. Session persistence
        2. Library scan
        3. Saved session reconciliation
        4. Audio backend
        5. Player
        6. Control API

        Raises:
            LibraryError: If no library folder is known or it cannot be read
            FileNotFoundError: If the library folder does not exist
            BackendNotFoundError: If the audio backend cannot be created
        """
        logger.info("Starting shelfplay...")

        # 1. Session persistence
        state_dir = self._config.session.state_path
        self._session = SessionPersistence(
            JsonFileSnapshotStore(state_dir),
            elapsed_write_interval=self._config.session.elapsed_write_interval,
        )
        logger.debug(f"Session state directory: {state_dir}")

        # 2. Library
        root = self._resolve_library_root()
        self._library = LibraryStore(root, extensions=self._config.library.extensions)
        logger.info(f"Scanning library at {root}...")
        tracks = await asyncio.to_thread(self._library.scan)
        self._session.remember_library_root(root)

        # 3. Saved session
        reconciled = reconcile(self._session.load_snapshot(), len(tracks))

        # 4. Audio backend
        logger.debug("Creating audio backend...")
        self._backend = await BackendFactory.create_from_config(self._config)
        logger.info(f"Audio backend: {self._backend.get_info()}")

        # 5. Player
        self._player = PlaybackController(
            self._library,
            self._backend,
            self._session,
            rates=self._config.playback.rates,
        )
        await self._player.attach(reconciled)

        # 6. Control API
        self._server = ControlServer(self._player, self._config.server)
        await self._server.start()

        self._is_running = True
        logger.info(f"shelfplay ready with {len(tracks)} tracks")

    def _resolve_library_root(self) -> Path:
        """Use the configured folder, falling back to the remembered one."""
        if self._config.library.root:
            return Path(self._config.library.root).expanduser()

        assert self._session is not None
        remembered = self._session.recall_library_root()
        if remembered is None:
            raise LibraryError(
                "No library folder configured. Pass --library or set library.root"
            )
        logger.info(f"Using remembered library folder: {remembered}")
        return remembered

    async def stop(self) -> None:
        """
        Stop shelfplay and all components.

        Shutdown order (reverse of startup):
        1. Stop control API
        2. Shut down player (writes the final snapshot)
        3. Disconnect backend
        """
        if not self._is_running:
            return

        logger.info("Stopping shelfplay...")
        self._is_running = False

        # 1. Stop control API
        if self._server:
            try:
                await self._server.stop()
            except Exception as e:
                logger.warning(f"Error stopping control API: {e}")

        # 2. Shut down player
        if self._player:
            try:
                await self._player.shutdown()
            except Exception as e:
                logger.warning(f"Error shutting down player: {e}")

        # 3. Disconnect backend
        if self._backend:
            try:
                await self._backend.disconnect()
            except Exception as e:
                logger.warning(f"Error disconnecting backend: {e}")

        logger.info("shelfplay stopped")

    async def run(self) -> None:
        """
        Run shelfplay until interrupted.

        Sets up signal handlers for graceful shutdown on SIGINT/SIGTERM.
        """
        loop = asyncio.get_running_loop()

        def handle_signal() -> None:
            logger.info("Shutdown signal received")
            self._shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, handle_signal)

        try:
            await self.start()
            await self._shutdown_event.wait()
        finally:
            await self.stop()

    def request_shutdown(self) -> None:
        """Ask run() to return."""
        self._shutdown_event.set()

    @property
    def is_running(self) -> bool:
        """Check if the application is running."""
        return self._is_running

    @property
    def player(self) -> Optional[PlaybackController]:
        return self._player
