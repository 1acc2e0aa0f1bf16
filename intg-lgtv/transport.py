"""
Control protocol transport of a single LG webOS TV.

Thin wrapper around the ``aiowebostv`` client: connection events, pairing key issuance,
request/response calls and pointer input events on the client's input connection.
"""

import contextlib
import logging
from enum import StrEnum
from typing import Any

import aiohttp
from aiowebostv import WebOsClient
from aiowebostv.exceptions import WebOsTvCommandError
from pyee.asyncio import AsyncIOEventEmitter

_LOG = logging.getLogger(__name__)


class TransportError(Exception):
    """Raised when the TV connection or a request to it fails."""


class TransportEvents(StrEnum):
    """Events emitted by a transport."""

    CONNECTED = "connected"
    ERROR = "connection_error"
    KEY_ISSUED = "key_issued"


class WebOsTransport:
    """Connection to the second screen API of one TV."""

    def __init__(self, address: str, client_key: str | None = None):
        """Create instance."""
        self._address = address
        self._client_key = client_key
        self._client: WebOsClient | None = None
        self.events = AsyncIOEventEmitter()

    @property
    def address(self) -> str:
        """Return the TV address."""
        return self._address

    @property
    def client_key(self) -> str | None:
        """Return the pairing key in use."""
        return self._client_key

    @property
    def is_connected(self) -> bool:
        """Return True if the websocket connection is alive."""
        return self._client is not None and self._client.is_connected()

    async def open(self) -> None:
        """
        Connect to the TV and perform the handshake.

        Without a pairing key the TV prompts the user to accept the connection. A key
        issued during the handshake is announced with ``KEY_ISSUED``.

        :raises TransportError: if the connection or the pairing failed.
        """
        _LOG.debug("Connecting to %s", self._address)
        self._client = WebOsClient(self._address, client_key=self._client_key)
        try:
            await self._client.connect()
        except Exception as err:  # pylint: disable=broad-exception-caught
            self._client = None
            self.events.emit(TransportEvents.ERROR, err)
            raise TransportError(f"Connection to {self._address} failed: {err}") from err

        key = self._client.client_key
        if key and key != self._client_key:
            _LOG.debug("Pairing key issued by %s", self._address)
            self._client_key = key
            self.events.emit(TransportEvents.KEY_ISSUED, key)

        self.events.emit(TransportEvents.CONNECTED)

    async def request(
        self, uri: str, payload: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """
        Send a request and wait for its response payload.

        :raises TransportError: if the TV is not connected or reports a failure.
        """
        if self._client is None:
            raise TransportError(f"Not connected to {self._address}")
        try:
            response = await self._client.request(uri, payload)
        except Exception as err:  # pylint: disable=broad-exception-caught
            raise TransportError(f"Request {uri} failed: {err}") from err
        return response or {}

    async def button(self, name: str) -> None:
        """
        Send a button press, e.g. ``HOME``, on the pointer input connection.

        :raises TransportError: if the TV is not connected or the event failed.
        """
        if self._client is None:
            raise TransportError(f"Not connected to {self._address}")
        try:
            await self._client.button(name)
        except (WebOsTvCommandError, aiohttp.ClientError, ConnectionError) as err:
            raise TransportError(f"Button {name} failed: {err}") from err

    async def click(self) -> None:
        """
        Send a pointer click on the pointer input connection.

        :raises TransportError: if the TV is not connected or the event failed.
        """
        if self._client is None:
            raise TransportError(f"Not connected to {self._address}")
        try:
            await self._client.click()
        except (WebOsTvCommandError, aiohttp.ClientError, ConnectionError) as err:
            raise TransportError(f"Click failed: {err}") from err

    async def close(self) -> None:
        """Close the connection."""
        client = self._client
        self._client = None
        if client is not None:
            with contextlib.suppress(Exception):
                await client.disconnect()
