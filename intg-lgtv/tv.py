"""
This module implements the LG webOS TV session of the Remote Two integration driver.

A session owns the cached property values of one connected TV, keeps them in sync by
polling, and maps property writes and actions onto second screen API requests.
"""

import asyncio
import contextlib
import logging
from asyncio import AbstractEventLoop
from dataclasses import dataclass
from typing import Any

from actions import (
    ActionError,
    ActionInvocation,
    AppTable,
    Command,
    PointerEvent,
    Request,
    parse_action,
)
from const import (
    DeviceIdentity,
    Endpoints,
    Events,
    POLL_INTERVAL,
    Properties,
    SessionState,
)
from network import NetworkProbe
from pyee.asyncio import AsyncIOEventEmitter
from transport import TransportError, WebOsTransport

_LOG = logging.getLogger(__name__)


class InitializationError(Exception):
    """The initial state of a TV could not be fetched."""


class PropertyError(Exception):
    """A property write was rejected."""


class UnknownPropertyError(PropertyError):
    """The TV has no property with that name."""


class ReadOnlyPropertyError(PropertyError):
    """The property cannot be written."""


class PropertyValueError(PropertyError):
    """The value is not valid for the property."""


@dataclass
class PropertyRecord:
    """Cached value of one exposed property."""

    name: str
    value: Any
    read_only: bool = False
    last_notified_value: Any = None

    def set_cached_value(self, value: Any) -> bool:
        """
        Update the cached value.

        :return: True if a change notification is due.
        """
        self.value = value
        if value == self.last_notified_value:
            return False
        self.last_notified_value = value
        return True


def _new_property(name: Properties, value: Any, read_only: bool = False):
    return PropertyRecord(name, value, read_only, last_notified_value=value)


def parse_volume_status(payload: dict[str, Any]) -> tuple[int | None, bool | None]:
    """Extract volume and mute state from a ``getVolume`` response."""
    status = payload.get("volumeStatus")
    if isinstance(status, dict):
        return status.get("volume"), status.get("muteStatus")
    return payload.get("volume"), payload.get("muted")


def _validate(name: str, value: Any) -> None:
    match name:
        case Properties.VOLUME:
            if isinstance(value, bool) or not isinstance(value, int):
                raise PropertyValueError(f"Invalid volume: {value!r}")
            if not 0 <= value <= 100:
                raise PropertyValueError(f"Volume out of range: {value}")
        case Properties.MUTE:
            if not isinstance(value, bool):
                raise PropertyValueError(f"Invalid mute state: {value!r}")
        case Properties.ON:
            if not isinstance(value, bool):
                raise PropertyValueError(f"Invalid power state: {value!r}")


class LgTv:
    """Representing a connected LG webOS TV."""

    def __init__(
        self,
        identity: DeviceIdentity,
        transport: WebOsTransport,
        network: NetworkProbe,
        loop: AbstractEventLoop | None = None,
    ) -> None:
        """Create instance."""
        self._identity = identity
        self._transport = transport
        self._network = network
        self.events = AsyncIOEventEmitter(loop)
        self._apps = AppTable([])
        self._properties: dict[str, PropertyRecord] = {}
        self._state = SessionState.CONNECTING
        self._poll_loop_task: asyncio.Task | None = None
        self._poll_task: asyncio.Task | None = None
        self._torn_down = False

    @property
    def identifier(self) -> str:
        """Return the device identifier."""
        return self._identity.identifier

    @property
    def identity(self) -> DeviceIdentity:
        """Return the device identity."""
        return self._identity

    @property
    def mac_address(self) -> str:
        """Return the MAC address."""
        return self._identity.mac_address

    @property
    def address(self) -> str:
        """Return the current IP address."""
        return self._identity.address

    @property
    def name(self) -> str:
        """Return the device name."""
        return self._identity.name

    @property
    def log_id(self) -> str:
        """Return a log identifier."""
        return self._identity.name if self._identity.name else self.identifier

    @property
    def state(self) -> SessionState:
        """Return the connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Return True if the session is connected and the transport alive."""
        return self._state == SessionState.CONNECTED and self._transport.is_connected

    @property
    def source_list(self) -> list[str]:
        """Return the launchable app titles."""
        return self._apps.titles

    @property
    def properties(self) -> dict[str, PropertyRecord]:
        """Return the property records."""
        return self._properties

    @property
    def values(self) -> dict[str, Any]:
        """Return the cached property values."""
        return {name: prop.value for name, prop in self._properties.items()}

    def value(self, name: str) -> Any:
        """Return the cached value of a property."""
        prop = self._properties.get(name)
        return prop.value if prop else None

    async def initialize(self) -> None:
        """
        Fetch the app list, the foreground app and the volume status.

        Properties are only populated if every request succeeds.

        :raises InitializationError: if any of the requests failed.
        """
        _LOG.debug("[%s] Fetching initial state", self.log_id)
        try:
            data = await self._transport.request(Endpoints.LIST_APPS)
            apps = AppTable(data.get("apps", []))

            data = await self._transport.request(Endpoints.GET_FOREGROUND_APP)
            active_app = apps.title(data.get("appId"))

            data = await self._transport.request(Endpoints.GET_VOLUME)
            volume, muted = parse_volume_status(data)
        except TransportError as err:
            raise InitializationError(
                f"Initial state of {self.log_id} unavailable: {err}"
            ) from err

        self._apps = apps
        self._properties = {
            Properties.ON: _new_property(Properties.ON, True),
            Properties.ACTIVE_APP: _new_property(
                Properties.ACTIVE_APP, active_app, read_only=True
            ),
            Properties.VOLUME: _new_property(Properties.VOLUME, volume),
            Properties.MUTE: _new_property(Properties.MUTE, muted),
        }
        self._state = SessionState.CONNECTED
        _LOG.debug(
            "[%s] Initialized with %d apps: %s", self.log_id, len(apps), self.values
        )

    def start_polling(self) -> None:
        """Start the periodic state poll."""
        if self._poll_loop_task is None and not self._torn_down:
            self._poll_loop_task = asyncio.create_task(self._poll_loop())

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(POLL_INTERVAL)
            if self._state != SessionState.CONNECTED:
                continue
            if self._poll_task is not None and not self._poll_task.done():
                _LOG.debug("[%s] Previous poll still running", self.log_id)
                continue
            self._poll_task = asyncio.create_task(self.poll())

    async def poll(self) -> None:
        """Fetch the foreground app and volume status and notify changed values."""
        try:
            data = await self._transport.request(Endpoints.GET_FOREGROUND_APP)
        except TransportError as err:
            _LOG.warning("[%s] Foreground app poll failed: %s", self.log_id, err)
        else:
            if not self._torn_down:
                self._update(Properties.ACTIVE_APP, self._apps.title(data.get("appId")))

        try:
            data = await self._transport.request(Endpoints.GET_VOLUME)
        except TransportError as err:
            _LOG.warning("[%s] Volume poll failed: %s", self.log_id, err)
        else:
            if not self._torn_down:
                volume, muted = parse_volume_status(data)
                if volume is not None:
                    self._update(Properties.VOLUME, volume)
                if muted is not None:
                    self._update(Properties.MUTE, muted)

    def _update(self, name: str, value: Any) -> None:
        prop = self._properties.get(name)
        if prop is None:
            return
        if prop.set_cached_value(value):
            _LOG.debug("[%s] %s changed to %s", self.log_id, name, value)
            self.events.emit(Events.UPDATE, self.identifier, {name: value})

    def set_on(self, on: bool) -> None:
        """Update the power state as observed from the network."""
        self._update(Properties.ON, on)

    def mark_unreachable(self) -> None:
        """The TV no longer answers: report it off and stop polling it."""
        self.set_on(False)
        self._state = SessionState.DISCONNECTED

    async def set_value(self, name: str, value: Any) -> Any:
        """
        Write a property.

        Resolves without contacting the TV if the value is valid and unchanged.

        :return: the new value.
        :raises PropertyError: if the property is unknown, read-only or the value invalid.
        :raises TransportError: if the TV rejected the command. The cache is unchanged.
        """
        prop = self._properties.get(name)
        if prop is None:
            raise UnknownPropertyError(f"Unknown property: {name}")
        if prop.read_only:
            raise ReadOnlyPropertyError(f"Read-only property: {name}")
        _validate(name, value)
        if value == prop.value:
            return prop.value

        match name:
            case Properties.VOLUME:
                await self._transport.request(Endpoints.SET_VOLUME, {"volume": value})
            case Properties.MUTE:
                await self._transport.request(Endpoints.SET_MUTE, {"mute": value})
            case Properties.ON:
                if value:
                    self._power_on()
                else:
                    await self._transport.request(Endpoints.POWER_OFF)

        # the session may have been closed while the command was in flight
        if not self._torn_down:
            self._update(name, value)
        return value

    def _power_on(self) -> None:
        _LOG.debug("[%s] Sending Wake-on-LAN", self.log_id)
        try:
            self._network.send_wake(self.mac_address)
        except (OSError, ValueError) as err:
            raise TransportError(f"Wake-on-LAN failed: {err}") from err

    async def perform_action(self, name: str, value: Any = None) -> ActionInvocation:
        """
        Perform an action.

        Invalid input, unknown apps and failed commands end the invocation in the
        error state, they are never raised.
        """
        invocation = ActionInvocation(name, value)
        invocation.start()
        try:
            action = parse_action(name, value, self._apps)
            await self._execute(action.command())
        except (ActionError, TransportError) as err:
            _LOG.error("[%s] Action %s failed: %s", self.log_id, name, err)
            invocation.fail(err)
        else:
            invocation.finish()
        self.events.emit(Events.ACTION, self.identifier, invocation)
        return invocation

    async def _execute(self, command: Command) -> None:
        match command:
            case Request(uri=uri, payload=payload):
                await self._transport.request(uri, payload)
            case PointerEvent(kind="click"):
                await self._transport.click()
            case PointerEvent(name=name):
                await self._transport.button(name)

    async def close(self) -> None:
        """
        Tear down the session.

        Stops polling and closes the transport. A request already in flight completes
        and its result is discarded.
        """
        self._torn_down = True
        self._state = SessionState.DISCONNECTED
        if self._poll_loop_task is not None and not self._poll_loop_task.done():
            self._poll_loop_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._poll_loop_task
        self._poll_loop_task = None
        with contextlib.suppress(Exception):
            await self._transport.close()
        _LOG.debug("[%s] Session closed", self.log_id)
