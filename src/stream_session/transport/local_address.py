"""
Local Address Resolution
========================

Finds the IPv4 address the upstream source should send datagrams to.

Resolution order:
    1. A private-range address (10/8, 172.16/12, 192.168/16)
    2. Any other non-loopback IPv4 address
    3. None (unavailable)
"""

import ipaddress
import logging
import socket
from typing import Iterable, List, Optional

import psutil


logger = logging.getLogger(__name__)

PRIVATE_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
)


def _interface_ipv4_addresses() -> List[str]:
    """IPv4 addresses of all interfaces that are up."""
    stats = psutil.net_if_stats()
    addresses = []
    for iface_name, iface_addrs in psutil.net_if_addrs().items():
        iface_stats = stats.get(iface_name)
        if iface_stats is not None and not iface_stats.isup:
            continue
        for addr in iface_addrs:
            if addr.family == socket.AF_INET:
                addresses.append(addr.address)
    return addresses


def select_local_ipv4(candidates: Iterable[str]) -> Optional[str]:
    """
    Pick the best reachable address from candidate IPv4 strings.

    Args:
        candidates: IPv4 addresses in interface order

    Returns:
        Preferred address, or None if only loopback/invalid addresses exist
    """
    fallback: Optional[str] = None
    for text in candidates:
        try:
            ip = ipaddress.IPv4Address(text)
        except ValueError:
            continue
        if ip.is_loopback or ip.is_unspecified:
            continue
        if any(ip in network for network in PRIVATE_NETWORKS):
            return str(ip)
        if fallback is None:
            fallback = str(ip)
    return fallback


def resolve_local_ipv4() -> Optional[str]:
    """
    Resolve this host's reachable IPv4 address.

    Returns:
        Address string, or None if none could be found
    """
    try:
        candidates = _interface_ipv4_addresses()
    except (OSError, RuntimeError) as e:
        logger.warning(f"Interface enumeration failed: {e}")
        return None

    address = select_local_ipv4(candidates)
    if address is None:
        logger.warning("No non-loopback IPv4 address available for datagram transport")
    else:
        logger.debug(f"Resolved local IPv4 address: {address}")
    return address
