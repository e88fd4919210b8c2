"""Tests for mDNS service registration."""

import socket
from unittest.mock import AsyncMock, MagicMock

import pytest

from lanotifica.errors import DiscoveryWarning
from lanotifica.mdns import (
    HOST_NAME,
    SERVICE_NAME,
    SERVICE_TYPE,
    TXT_INFO,
    ServiceAdvertiser,
)


@pytest.fixture
def mock_zeroconf():
    """AsyncZeroconf stand-in recording registrations."""
    zc = MagicMock()
    zc.async_register_service = AsyncMock()
    zc.async_unregister_service = AsyncMock()
    zc.async_close = AsyncMock()
    return zc


@pytest.fixture
def addresses():
    """Mutable list of addresses returned by the IP provider."""
    return ["192.168.1.50"]


@pytest.fixture
def advertiser(mock_zeroconf, addresses):
    return ServiceAdvertiser(
        ":19420",
        ip_provider=lambda: list(addresses),
        zeroconf_factory=lambda: mock_zeroconf,
        refresh_interval=3600,
    )


class TestServiceAdvertiserStart:
    """Test registration."""

    async def test_registers_service(self, advertiser, mock_zeroconf):
        """Successful start registers one service and returns no warning."""
        warning = await advertiser.start()

        assert warning is None
        assert advertiser.running
        mock_zeroconf.async_register_service.assert_awaited_once()
        await advertiser.stop()

    async def test_service_info_contents(self, advertiser, mock_zeroconf):
        """Service is advertised with the expected type, name, port and TXT."""
        await advertiser.start()

        info = mock_zeroconf.async_register_service.call_args.args[0]
        assert info.type == SERVICE_TYPE
        assert info.name == SERVICE_NAME
        assert info.server == HOST_NAME
        assert info.port == 19420
        assert info.addresses == [socket.inet_aton("192.168.1.50")]
        assert info.properties == {b"info": TXT_INFO.encode()}
        await advertiser.stop()

    async def test_start_twice_registers_once(self, advertiser, mock_zeroconf):
        """A second start is a no-op."""
        await advertiser.start()
        await advertiser.start()

        assert mock_zeroconf.async_register_service.await_count == 1
        await advertiser.stop()

    async def test_invalid_addresses_skipped(self, mock_zeroconf):
        """Unparsable addresses from the provider are ignored."""
        advertiser = ServiceAdvertiser(
            ":19420",
            ip_provider=lambda: ["not-an-ip", "10.0.0.2"],
            zeroconf_factory=lambda: mock_zeroconf,
        )

        await advertiser.start()

        info = mock_zeroconf.async_register_service.call_args.args[0]
        assert info.addresses == [socket.inet_aton("10.0.0.2")]
        await advertiser.stop()


class TestServiceAdvertiserDegradation:
    """Discovery failures never raise."""

    async def test_factory_failure_returns_warning(self):
        """Responder creation failure is reported as a DiscoveryWarning."""

        def failing_factory():
            raise OSError("multicast not supported")

        advertiser = ServiceAdvertiser(
            ":19420", ip_provider=lambda: ["192.168.1.50"], zeroconf_factory=failing_factory
        )

        warning = await advertiser.start()

        assert isinstance(warning, DiscoveryWarning)
        assert "multicast not supported" in str(warning)
        assert not advertiser.running
        await advertiser.stop()

    async def test_register_failure_closes_responder(self, advertiser, mock_zeroconf):
        """Registration failure releases the responder."""
        mock_zeroconf.async_register_service.side_effect = RuntimeError("name conflict")

        warning = await advertiser.start()

        assert isinstance(warning, DiscoveryWarning)
        mock_zeroconf.async_close.assert_awaited_once()
        assert not advertiser.running

    async def test_no_addresses_returns_warning(self, mock_zeroconf):
        """Nothing to advertise is a warning, not an error."""
        advertiser = ServiceAdvertiser(
            ":19420", ip_provider=lambda: [], zeroconf_factory=lambda: mock_zeroconf
        )

        warning = await advertiser.start()

        assert isinstance(warning, DiscoveryWarning)
        mock_zeroconf.async_register_service.assert_not_called()

    @pytest.mark.parametrize("listen", [":0", ":abc", ":70000", ""])
    async def test_invalid_port_returns_warning(self, mock_zeroconf, listen):
        """An unusable listen port is a warning."""
        advertiser = ServiceAdvertiser(
            listen, ip_provider=lambda: ["192.168.1.50"], zeroconf_factory=lambda: mock_zeroconf
        )

        warning = await advertiser.start()

        assert isinstance(warning, DiscoveryWarning)
        mock_zeroconf.async_register_service.assert_not_called()


class TestServiceAdvertiserStop:
    """Test shutdown."""

    async def test_stop_without_start(self, advertiser, mock_zeroconf):
        """stop() before start() is a no-op."""
        await advertiser.stop()

        mock_zeroconf.async_unregister_service.assert_not_called()

    async def test_stop_unregisters_and_closes(self, advertiser, mock_zeroconf):
        """stop() unregisters the service and closes the responder."""
        await advertiser.start()

        await advertiser.stop()

        mock_zeroconf.async_unregister_service.assert_awaited_once()
        mock_zeroconf.async_close.assert_awaited_once()
        assert not advertiser.running

    async def test_stop_is_idempotent(self, advertiser, mock_zeroconf):
        """Calling stop() twice releases resources once."""
        await advertiser.start()

        await advertiser.stop()
        await advertiser.stop()

        assert mock_zeroconf.async_close.await_count == 1

    async def test_unregister_error_is_logged(self, advertiser, mock_zeroconf):
        """An unregister failure still closes the responder."""
        mock_zeroconf.async_unregister_service.side_effect = OSError("socket closed")
        await advertiser.start()

        await advertiser.stop()

        mock_zeroconf.async_close.assert_awaited_once()


class TestUpdateAddresses:
    """Test re-registration on address change."""

    async def test_unchanged_addresses_do_nothing(self, advertiser, mock_zeroconf):
        """Same addresses leave the registration alone."""
        await advertiser.start()

        await advertiser.update_addresses()

        mock_zeroconf.async_unregister_service.assert_not_called()
        assert mock_zeroconf.async_register_service.await_count == 1
        await advertiser.stop()

    async def test_changed_addresses_reregister(self, advertiser, mock_zeroconf, addresses):
        """A new address triggers unregister + register."""
        await advertiser.start()
        addresses[:] = ["192.168.1.77"]

        await advertiser.update_addresses()

        mock_zeroconf.async_unregister_service.assert_awaited_once()
        assert mock_zeroconf.async_register_service.await_count == 2
        info = mock_zeroconf.async_register_service.call_args.args[0]
        assert info.addresses == [socket.inet_aton("192.168.1.77")]
        assert info.port == 19420
        await advertiser.stop()

    async def test_update_before_start_is_noop(self, advertiser, mock_zeroconf):
        """Nothing happens when not registered."""
        await advertiser.update_addresses()

        mock_zeroconf.async_register_service.assert_not_called()
