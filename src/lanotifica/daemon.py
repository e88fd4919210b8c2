"""Relay process lifecycle.

Startup order:
1. Load config (fatal on failure)
2. Load or create the TLS identity (fatal on failure)
3. Start mDNS advertisement (optional, failure only logged)
4. Start the HTTPS server

Shutdown stops the advertiser and the server, in that order.
"""

import asyncio
import logging
import ssl
from typing import Callable

from lanotifica.cert import Identity, load_or_create_identity
from lanotifica.config import Config, load_config
from lanotifica.errors import LanotificaError
from lanotifica.icons import IconCache
from lanotifica.mdns import ServiceAdvertiser
from lanotifica.notification import DesktopNotifier, Notifier
from lanotifica.paths import AppPaths
from lanotifica.server import RelayServer

logger = logging.getLogger(__name__)


class StartupError(LanotificaError):
    """Error during relay startup."""

    pass


class Relay:
    """The LaNotifica relay process.

    Example:
        relay = Relay(AppPaths.from_environment())
        await relay.start()
        await relay.run_forever()  # until request_stop()
        await relay.stop()
    """

    def __init__(
        self,
        paths: AppPaths,
        notifier: Notifier | None = None,
        advertiser_factory: Callable[[str], ServiceAdvertiser] | None = None,
    ):
        """Initialize relay.

        Args:
            paths: Resolved config and cache locations.
            notifier: Notification delivery. Defaults to notify-send with
                an icon cache under paths.icon_dir.
            advertiser_factory: Builds the mDNS advertiser from the listen
                address. Injectable for testing.
        """
        self._paths = paths
        self._notifier = notifier
        self._advertiser_factory = advertiser_factory or ServiceAdvertiser
        self._advertiser: ServiceAdvertiser | None = None
        self._server: RelayServer | None = None
        self._stop_event = asyncio.Event()
        self.config: Config | None = None
        self.identity: Identity | None = None

    async def start(self) -> None:
        """Start the relay.

        Raises:
            StartupError: If config, identity or the listener fail.
        """
        logger.info("Starting relay...")

        try:
            self.config = load_config(self._paths)
        except LanotificaError as e:
            raise StartupError(f"Failed to load config: {e}") from e
        logger.info(f"Config loaded from {self._paths.config_file}")

        try:
            self.identity = load_or_create_identity(self._paths.config_dir)
            ssl_context = self.identity.ssl_context()
        except (LanotificaError, ssl.SSLError, OSError) as e:
            raise StartupError(f"Failed to load/create certificate: {e}") from e
        logger.info(f"Certificate fingerprint: {self.identity.fingerprint}")

        self._advertiser = self._advertiser_factory(self.config.port)
        warning = await self._advertiser.start()
        if warning is not None:
            logger.warning(f"Continuing without mDNS discovery: {warning}")

        notifier = self._notifier or DesktopNotifier(
            IconCache(self._paths.icon_dir, max_age_days=self.config.icon_cache_max_age_days)
        )
        self._server = RelayServer(self.config, self.identity.fingerprint, notifier)

        try:
            await self._server.start(ssl_context=ssl_context)
        except (OSError, ValueError) as e:
            await self._advertiser.stop()
            raise StartupError(f"Failed to start server on {self.config.port}: {e}") from e

        logger.info("Relay started successfully")

    def request_stop(self) -> None:
        """Ask run_forever() to return. Safe to call from a signal handler."""
        self._stop_event.set()

    async def run_forever(self) -> None:
        await self._stop_event.wait()

    async def stop(self) -> None:
        """Stop advertisement and the server. Safe to call more than once."""
        logger.info("Shutting down...")

        if self._advertiser:
            await self._advertiser.stop()
            self._advertiser = None

        if self._server:
            await self._server.stop()
            self._server = None

        logger.info("Relay shutdown complete")
