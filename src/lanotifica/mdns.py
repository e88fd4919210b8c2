"""mDNS service registration for local network discovery.

Registers the relay as a _lanotifica._tcp service so the phone can find
it on the LAN without the user typing an IP address.

Discovery is optional. If multicast is unavailable the advertiser reports
a DiscoveryWarning and the relay keeps running; the phone then falls back
to manual IP entry.
"""

import asyncio
import logging
import socket
from typing import Callable

from zeroconf import IPVersion, ServiceInfo
from zeroconf.asyncio import AsyncZeroconf

from lanotifica.errors import DiscoveryWarning
from lanotifica.netutil import get_local_ipv4_addresses, parse_port

logger = logging.getLogger(__name__)

INSTANCE_NAME = "lanotifica"
SERVICE_TYPE = "_lanotifica._tcp.local."
SERVICE_NAME = f"{INSTANCE_NAME}.{SERVICE_TYPE}"
HOST_NAME = "lanotifica.local."
TXT_INFO = "LaNotifica notification forwarder"

REFRESH_INTERVAL = 30.0  # seconds


class ServiceAdvertiser:
    """Best-effort mDNS advertisement of the relay.

    Example:
        advertiser = ServiceAdvertiser(config.port)
        warning = await advertiser.start()
        if warning:
            logger.warning(...)
        # ... relay running ...
        await advertiser.stop()
    """

    def __init__(
        self,
        listen: str,
        ip_provider: Callable[[], list[str]] | None = None,
        zeroconf_factory: Callable[[], AsyncZeroconf] | None = None,
        refresh_interval: float = REFRESH_INTERVAL,
    ):
        """Initialize advertiser.

        Args:
            listen: Relay listen address, e.g. ":19420".
            ip_provider: Returns IPv4 addresses to advertise. Defaults to
                all non-loopback local addresses.
            zeroconf_factory: Creates the responder. Injectable for testing.
            refresh_interval: Seconds between address change checks.
        """
        self._listen = listen
        self._ip_provider = ip_provider or get_local_ipv4_addresses
        self._zeroconf_factory = zeroconf_factory or _default_zeroconf
        self._refresh_interval = refresh_interval
        self._zeroconf: AsyncZeroconf | None = None
        self._service_info: ServiceInfo | None = None
        self._update_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._service_info is not None

    async def start(self) -> DiscoveryWarning | None:
        """Register the service on the local network.

        Returns:
            None on success, or a DiscoveryWarning describing why discovery
            is unavailable. Never raises for advertisement failures.
        """
        if self.running:
            return None

        logger.info("Starting mDNS service registration")

        try:
            port = parse_port(self._listen)
        except ValueError as e:
            return self._warn(f"invalid listen port {self._listen!r}: {e}")

        addresses = self._get_addresses()
        if not addresses:
            return self._warn("no IPv4 addresses available for mDNS registration")

        info = self._build_info(port, addresses)

        try:
            self._zeroconf = self._zeroconf_factory()
            await self._zeroconf.async_register_service(info)
        except Exception as e:
            await self._close_zeroconf()
            return self._warn(f"mDNS registration failed: {e}")

        self._service_info = info
        logger.info(f"mDNS: registered as {HOST_NAME.rstrip('.')}:{port}")
        for addr in addresses:
            logger.info(f"  Address: {socket.inet_ntoa(addr)}")

        self._update_task = asyncio.create_task(self._update_loop())
        return None

    async def stop(self) -> None:
        """Unregister the service and release the responder.

        Safe to call if start() failed or was never called.
        """
        if self._update_task:
            self._update_task.cancel()
            try:
                await self._update_task
            except asyncio.CancelledError:
                pass
            self._update_task = None

        if self._zeroconf and self._service_info:
            logger.info("Unregistering mDNS service")
            try:
                await self._zeroconf.async_unregister_service(self._service_info)
            except Exception as e:
                logger.warning(f"Error unregistering mDNS service: {e}")
        self._service_info = None
        await self._close_zeroconf()

    async def update_addresses(self) -> None:
        """Re-register when the local addresses changed (call on IP change)."""
        if not self._zeroconf or not self._service_info:
            return

        new_addresses = self._get_addresses()
        if not new_addresses or new_addresses == self._service_info.addresses:
            return

        logger.info("Updating mDNS addresses")

        new_info = self._build_info(self._service_info.port, new_addresses)
        await self._zeroconf.async_unregister_service(self._service_info)
        self._service_info = new_info
        await self._zeroconf.async_register_service(new_info)

        for addr in new_addresses:
            logger.info(f"  New address: {socket.inet_ntoa(addr)}")

    def _build_info(self, port: int, addresses: list[bytes]) -> ServiceInfo:
        return ServiceInfo(
            SERVICE_TYPE,
            SERVICE_NAME,
            addresses=addresses,
            port=port,
            properties={"info": TXT_INFO},
            server=HOST_NAME,
        )

    def _get_addresses(self) -> list[bytes]:
        """Get packed IPv4 addresses to register."""
        addresses = []
        for ip in self._ip_provider():
            try:
                addresses.append(socket.inet_aton(ip))
            except OSError:
                logger.debug(f"Skipping invalid address {ip!r}")
        return addresses

    def _warn(self, reason: str) -> DiscoveryWarning:
        logger.warning(f"mDNS unavailable: {reason}")
        logger.warning("The relay still works; enter its IP address in the app manually")
        return DiscoveryWarning(reason)

    async def _close_zeroconf(self) -> None:
        if self._zeroconf is None:
            return
        zc, self._zeroconf = self._zeroconf, None
        try:
            await zc.async_close()
        except Exception as e:
            logger.warning(f"Error closing mDNS responder: {e}")

    async def _update_loop(self) -> None:
        """Periodically check for IP changes and update registration."""
        while True:
            try:
                await asyncio.sleep(self._refresh_interval)
                await self.update_addresses()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.warning(f"Error updating mDNS addresses: {e}")


def _default_zeroconf() -> AsyncZeroconf:
    return AsyncZeroconf(ip_version=IPVersion.V4Only)
