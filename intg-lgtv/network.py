"""
Network primitives used by TV discovery.

Hardware address lookup through the ARP table, reachability probes and Wake-on-LAN.
"""

import asyncio
import logging
import re

import wakeonlan
from config import normalize_mac
from const import UNKNOWN_MAC

_LOG = logging.getLogger(__name__)

_ARP_MAC = re.compile(r"(([0-9a-f]{1,2}[:-]){5}[0-9a-f]{1,2})", re.IGNORECASE)


class NetworkProbe:
    """Hardware address lookup, reachability check and wake-up of TVs."""

    def __init__(self, ping_timeout: int = 1):
        """Create instance."""
        self._ping_timeout = ping_timeout

    async def resolve_mac(self, address: str) -> str:
        """
        Look up the MAC address of an IP address in the ARP table.

        :return: the MAC address, or ``UNKNOWN_MAC`` if it could not be resolved.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                "arp",
                "-n",
                address,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
            stdout, _ = await proc.communicate()
        except OSError as err:
            _LOG.warning("ARP lookup for %s failed: %s", address, err)
            return UNKNOWN_MAC

        match = _ARP_MAC.search(stdout.decode(errors="ignore"))
        if match is None:
            _LOG.debug("No ARP entry for %s", address)
            return UNKNOWN_MAC
        return normalize_mac(match.group(1))

    async def probe(self, address: str) -> bool:
        """Return True if the address answers an ICMP echo request."""
        try:
            proc = await asyncio.create_subprocess_exec(
                "ping",
                "-c",
                "1",
                "-W",
                str(self._ping_timeout),
                address,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            return await proc.wait() == 0
        except OSError as err:
            _LOG.warning("Ping of %s failed: %s", address, err)
            return False

    def send_wake(self, mac: str) -> None:
        """Send a Wake-on-LAN magic packet. Fire and forget."""
        _LOG.debug("Sending magic packet to %s", mac)
        wakeonlan.send_magic_packet(mac)

