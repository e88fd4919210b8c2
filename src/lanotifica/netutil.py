"""Local network helpers shared by the certificate and mDNS code."""

import ipaddress
import logging

import netifaces

logger = logging.getLogger(__name__)

LOOPBACK_IPV4 = "127.0.0.1"


def get_local_ipv4_addresses() -> list[str]:
    """List non-loopback IPv4 addresses of all local interfaces.

    Returns:
        Addresses in interface order, without duplicates. Empty if
        interfaces cannot be enumerated.
    """
    addresses: list[str] = []
    try:
        interfaces = netifaces.interfaces()
    except OSError as e:
        logger.warning(f"Cannot enumerate network interfaces: {e}")
        return addresses

    for iface in interfaces:
        try:
            addrs = netifaces.ifaddresses(iface)
        except ValueError:
            # Interface vanished between listing and lookup
            continue

        for addr in addrs.get(netifaces.AF_INET, []):
            ip = addr.get("addr")
            if not ip:
                continue
            try:
                parsed = ipaddress.IPv4Address(ip)
            except ValueError:
                continue
            if parsed.is_loopback or ip in addresses:
                continue
            addresses.append(ip)

    return addresses


def parse_port(listen: str) -> int:
    """Extract the TCP port from a listen address.

    Accepts ":19420", "19420" and "host:19420".

    Raises:
        ValueError: If no valid port number can be found.
    """
    _, _, port_str = listen.rpartition(":")
    port = int(port_str)
    if not 0 < port < 65536:
        raise ValueError(f"port out of range: {port}")
    return port


def parse_host(listen: str) -> str:
    """Extract the bind host from a listen address; empty means all interfaces."""
    host, sep, _ = listen.rpartition(":")
    if not sep or not host:
        return "0.0.0.0"
    return host.strip("[]")
