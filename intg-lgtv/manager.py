"""
Session management of LG webOS TVs.

Looks up pairing keys, opens the control connection, hands a connected TV to its
session for the initial state fetch and tears sessions down again.
"""

import logging
from asyncio import AbstractEventLoop
from collections.abc import Callable, Iterator
from functools import partial

from config import KeyStoreError, PairingKeys
from const import DeviceIdentity, Events
from network import NetworkProbe
from pyee.asyncio import AsyncIOEventEmitter
from transport import TransportError, TransportEvents, WebOsTransport
from tv import InitializationError, LgTv

_LOG = logging.getLogger(__name__)


class KnownDevices:
    """MAC addresses reconciled to an active or pending session."""

    def __init__(self) -> None:
        """Create instance."""
        self._active: dict[str, DeviceIdentity] = {}
        self._pending: set[str] = set()

    def __contains__(self, mac: object) -> bool:
        return mac in self._active or mac in self._pending

    def __iter__(self) -> Iterator[DeviceIdentity]:
        return iter(list(self._active.values()))

    def __len__(self) -> int:
        return len(self._active)

    def get(self, mac: str) -> DeviceIdentity | None:
        """Return the identity of an active device."""
        return self._active.get(mac)

    def is_pending(self, mac: str) -> bool:
        """Return True if a connection attempt for the MAC address is in flight."""
        return mac in self._pending

    def claim(self, mac: str) -> bool:
        """
        Reserve a MAC address for a connection attempt.

        :return: False if an attempt for that address is already in flight.
        """
        if mac in self._pending:
            return False
        self._pending.add(mac)
        return True

    def release(self, mac: str) -> None:
        """End a connection attempt."""
        self._pending.discard(mac)

    def activate(self, identity: DeviceIdentity) -> None:
        """Record the identity of a connected device."""
        self._active[identity.mac_address] = identity

    def discard(self, mac: str) -> None:
        """Forget an active device."""
        self._active.pop(mac, None)


TransportFactory = Callable[[str, str | None], WebOsTransport]


class SessionManager:
    """Opens and closes TV sessions, one per MAC address."""

    def __init__(
        self,
        known: KnownDevices,
        store: PairingKeys,
        network: NetworkProbe,
        transport_factory: TransportFactory = WebOsTransport,
        on_error: Callable[[Exception], None] | None = None,
        loop: AbstractEventLoop | None = None,
    ) -> None:
        """
        Create instance.

        :param known: known-device set owned by discovery
        :param store: pairing key store
        :param network: network primitives handed to sessions
        :param transport_factory: creates a transport for an address and pairing key
        :param on_error: receives pairing key persistence failures
        :param loop: event loop
        """
        self._known = known
        self._store = store
        self._network = network
        self._transport_factory = transport_factory
        self._on_error = on_error
        self._loop = loop
        self._sessions: dict[str, LgTv] = {}
        self.events = AsyncIOEventEmitter(loop)

    @property
    def sessions(self) -> list[LgTv]:
        """Return the published sessions."""
        return list(self._sessions.values())

    def get(self, mac: str) -> LgTv | None:
        """Return the session of a MAC address."""
        return self._sessions.get(mac)

    def get_by_id(self, device_id: str) -> LgTv | None:
        """Return the session with the given device identifier."""
        for session in self._sessions.values():
            if session.identifier == device_id:
                return session
        return None

    async def connect(self, identity: DeviceIdentity) -> LgTv | None:
        """
        Open a session for an identity.

        A second call for a MAC address with a pending or active session does nothing.

        :return: the new session, or None if connecting or initializing failed.
        """
        mac = identity.mac_address
        if mac in self._known:
            _LOG.debug("[%s] Session for %s already exists", identity.name, mac)
            return None
        self._known.claim(mac)
        return await self._establish(identity)

    async def replace(self, identity: DeviceIdentity) -> LgTv | None:
        """
        Close the session of an identity's MAC address and open a new one.

        The old session is removed before the new one connects.

        :return: the new session, or None if connecting or initializing failed.
        """
        mac = identity.mac_address
        if not self._known.claim(mac):
            _LOG.debug("[%s] Connection to %s already in progress", identity.name, mac)
            return None
        old = self._sessions.get(mac)
        if old is not None:
            _LOG.info(
                "[%s] Replacing session at %s with %s",
                identity.name,
                old.address,
                identity.address,
            )
            await self._teardown(old)
        return await self._establish(identity)

    async def _establish(self, identity: DeviceIdentity) -> LgTv | None:
        mac = identity.mac_address
        try:
            key = await self._load_key(mac)
            transport = self._transport_factory(identity.address, key)
            transport.events.on(
                TransportEvents.KEY_ISSUED, partial(self._on_key_issued, identity)
            )

            try:
                await transport.open()
            except TransportError as err:
                _LOG.error("[%s] Failed to connect to device: %s", identity.name, err)
                return None

            session = LgTv(identity, transport, self._network, self._loop)
            try:
                await session.initialize()
            except InitializationError as err:
                _LOG.error("[%s] Failed to create device: %s", identity.name, err)
                await session.close()
                return None

            self._sessions[mac] = session
            self._known.activate(identity)
            session.start_polling()
            _LOG.info(
                "[%s] Connected to %s at %s", identity.name, mac, identity.address
            )
            self.events.emit(Events.DEVICE_ADDED, session)
            return session
        finally:
            self._known.release(mac)

    async def _load_key(self, mac: str) -> str | None:
        try:
            return await self._store.get(mac)
        except KeyStoreError as err:
            _LOG.warning("Failed to load pairing data for %s: %s", mac, err)
            return None

    async def _on_key_issued(self, identity: DeviceIdentity, key: str) -> None:
        try:
            await self._store.put(
                identity.mac_address, key, identity.address, identity.name
            )
        except KeyStoreError as err:
            _LOG.error(
                "Failed to store pairing data for %s: %s", identity.mac_address, err
            )
            if self._on_error is not None:
                self._on_error(err)

    async def disconnect(self, mac: str) -> None:
        """
        Close the session of a MAC address and forget the device.

        Safe to call for a MAC address without a completed session.
        """
        session = self._sessions.get(mac)
        if session is None:
            self._known.discard(mac)
            return
        await self._teardown(session)

    async def _teardown(self, session: LgTv) -> None:
        mac = session.mac_address
        self._sessions.pop(mac, None)
        self._known.discard(mac)
        await session.close()
        _LOG.info("[%s] Removed device %s", session.log_id, session.identifier)
        self.events.emit(Events.DEVICE_REMOVED, session.identifier)

    async def close(self) -> None:
        """Close every session."""
        for session in list(self._sessions.values()):
            await self._teardown(session)
