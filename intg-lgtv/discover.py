"""
Discover LG webOS TVs in the local network.

Configured addresses and SSDP answers are resolved to MAC addresses and reconciled
with the known devices: new TVs are connected, TVs that moved to a new address are
reconnected and TVs without a live connection are probed.
"""

import asyncio
import contextlib
import ipaddress
import logging
import re
from urllib.parse import unquote, urlparse

from config import normalize_mac
from const import (
    DEFAULT_NAME,
    DISCOVERY_INTERVAL,
    SSDP_SERVICE,
    SSDP_TIMEOUT,
    UNKNOWN_MAC,
    DeviceIdentity,
)
from manager import KnownDevices, SessionManager
from network import NetworkProbe
from ucapi_framework import DiscoveredDevice
from ucapi_framework.discovery import SSDPDiscovery

_LOG = logging.getLogger(__name__)

_WAKEUP_MAC = re.compile(r"MAC=([0-9a-f:-]+)", re.IGNORECASE)


def _is_ip_address(address: str) -> bool:
    try:
        ipaddress.ip_address(address)
    except ValueError:
        return False
    return True


class LgTvSsdpDiscovery(SSDPDiscovery):
    """Discover LG webOS TVs in local network using SSDP."""

    def __init__(self, timeout: int = SSDP_TIMEOUT):
        """Create instance searching for the webOS second screen service."""
        super().__init__(search_target=SSDP_SERVICE, timeout=timeout)

    def parse_ssdp_device(self, raw_device: dict) -> DiscoveredDevice | None:
        """
        Parse an SSDP answer into a DiscoveredDevice.

        The address is taken from the LOCATION header, the name from the LG device
        name header and the MAC address from the WAKEUP header when the TV sends one.

        :param raw_device: SSDP response headers
        :return: DiscoveredDevice or None if the answer is not from a webOS TV
        """
        headers = {str(key).upper(): str(value) for key, value in raw_device.items()}
        if headers.get("ST") != SSDP_SERVICE:
            return None

        address = urlparse(headers.get("LOCATION", "")).hostname
        if not address:
            _LOG.debug("SSDP answer without location: %s", raw_device)
            return None

        name = unquote(headers.get("DLNADEVICENAME.LGE.COM", "")) or DEFAULT_NAME

        mac_address = None
        wakeup = _WAKEUP_MAC.search(headers.get("WAKEUP", ""))
        if wakeup and normalize_mac(wakeup.group(1)) != UNKNOWN_MAC:
            mac_address = normalize_mac(wakeup.group(1))

        _LOG.debug("Parsed LG TV: %s at %s (%s)", name, address, mac_address)

        return DiscoveredDevice(
            identifier=mac_address or address,
            name=name,
            address=address,
            extra_data={"mac_address": mac_address, "service": headers["ST"]},
        )


class LgTvDiscovery:
    """Resolves discovered addresses to TV identities and keeps sessions in sync."""

    def __init__(
        self,
        manager: SessionManager,
        known: KnownDevices,
        network: NetworkProbe,
        addresses: list[str] | None = None,
        ssdp: SSDPDiscovery | None = None,
    ) -> None:
        """
        Create instance.

        :param manager: session manager sharing the known-device set
        :param known: known-device set
        :param network: network primitives
        :param addresses: statically configured TV addresses
        :param ssdp: SSDP discovery, created on start if not given
        """
        self._manager = manager
        self._known = known
        self._network = network
        self._addresses = list(addresses or [])
        self._ssdp = ssdp
        self._lock = asyncio.Lock()
        self._refresh_task: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def known(self) -> KnownDevices:
        """Return the known-device set."""
        return self._known

    async def start(self) -> None:
        """Start periodic discovery. The first cycle runs immediately."""
        if self._refresh_task is not None:
            return
        if self._ssdp is None:
            self._ssdp = LgTvSsdpDiscovery()
        self._refresh_task = asyncio.create_task(self._refresh_loop())

    async def stop(self) -> None:
        """Stop periodic discovery."""
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._refresh_task
            self._refresh_task = None

    async def _refresh_loop(self) -> None:
        while True:
            self.refresh()
            await asyncio.sleep(DISCOVERY_INTERVAL)

    def refresh(self) -> None:
        """Run one discovery cycle in the background."""
        self._spawn(self.scan_configured(self._addresses))
        self._spawn(self.check_liveness())
        self._spawn(self.scan_network())

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def scan_configured(self, addresses: list[str]) -> None:
        """Check each statically configured address."""
        for address in addresses:
            await self.add_device(address)

    async def scan_network(self) -> None:
        """Search for TVs with SSDP and reconcile every answer."""
        if self._ssdp is None:
            return
        # the search blocks until its timeout, keep it off the event loop
        devices = await asyncio.to_thread(asyncio.run, self._ssdp.discover())
        for device in devices:
            self.handle_discovered(device)

    def handle_discovered(self, device: DiscoveredDevice) -> None:
        """Reconcile a TV found by SSDP unless it is connected at that address."""
        mac = (device.extra_data or {}).get("mac_address")
        if mac is not None:
            identity = self._known.get(mac)
            session = self._manager.get(mac)
            if (
                identity is not None
                and identity.address == device.address
                and session is not None
                and session.is_connected
            ):
                return
        self._spawn(self.add_device(device.address, device.name))

    async def add_device(self, address: str, name: str | None = None) -> None:
        """
        Resolve an address to a MAC address and connect or reconnect the TV.

        Unresolvable addresses are skipped.
        """
        if not _is_ip_address(address):
            _LOG.debug("Ignoring invalid address %s", address)
            return

        mac = await self._network.resolve_mac(address)
        if mac == UNKNOWN_MAC:
            _LOG.debug("No MAC address for %s, skipping", address)
            return

        async with self._lock:
            if self._known.is_pending(mac):
                return
            identity = self._known.get(mac)
            session = self._manager.get(mac)
            if identity is not None and session is not None:
                if identity.address == address and session.is_connected:
                    session.set_on(True)
                    return
                if identity.address == address:
                    _LOG.info(
                        "[%s] Connection to %s lost, reconnecting", session.log_id, mac
                    )
                else:
                    _LOG.info(
                        "[%s] Address of %s changed from %s to %s",
                        session.log_id,
                        mac,
                        identity.address,
                        address,
                    )
                new_identity = DeviceIdentity(mac, address, identity.name)
                replace = True
            else:
                new_identity = DeviceIdentity(mac, address, name or DEFAULT_NAME)
                replace = False

        if replace:
            await self._manager.replace(new_identity)
        else:
            await self._manager.connect(new_identity)

    async def check_liveness(self) -> None:
        """
        Probe TVs without a live connection.

        Unreachable TVs are reported off, reachable ones are reconnected.
        """
        async with self._lock:
            stale = [
                session
                for session in self._manager.sessions
                if not session.is_connected
            ]
            reachable = []
            for session in stale:
                if await self._network.probe(session.address):
                    reachable.append(session.identity)
                else:
                    _LOG.debug("[%s] Not reachable", session.log_id)
                    session.mark_unreachable()

        for identity in reachable:
            await self.add_device(identity.address, identity.name)
