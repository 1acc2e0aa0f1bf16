"""
Configuration and pairing key storage of the LG TV integration driver.

Every TV the integration has paired with is a record in ``config.json`` of the
integration's config directory, keyed by its MAC address. The record's address is
checked in every discovery cycle in addition to SSDP.
"""

import asyncio
import dataclasses
import logging
import re
from dataclasses import dataclass

from const import DEFAULT_NAME, UNKNOWN_MAC
from ucapi_framework import BaseConfigManager

_LOG = logging.getLogger(__name__)

_MAC_PATTERN = re.compile(r"^([0-9a-f]{1,2}[:-]){5}[0-9a-f]{1,2}$", re.IGNORECASE)


class KeyStoreError(Exception):
    """Raised when a pairing key could not be persisted."""


def normalize_mac(mac: str | None) -> str:
    """
    Normalize a MAC address to lower-case, colon separated, zero padded octets.

    Anything that does not look like a MAC address becomes the unknown sentinel.
    """
    if not mac or not _MAC_PATTERN.match(mac.strip()):
        return UNKNOWN_MAC
    octets = re.split("[:-]", mac.strip().lower())
    return ":".join(octet.zfill(2) for octet in octets)


@dataclass
class LgTvConfig:
    """LG TV device configuration."""

    identifier: str
    """Unique identifier of the device. (MAC Address)"""
    name: str = DEFAULT_NAME
    """Friendly name of the device."""
    address: str = ""
    """IP Address of device"""
    token: str | None = None
    """Pairing key issued by the TV."""


class LgTvConfigManager(BaseConfigManager[LgTvConfig]):
    """Configured TVs, persisted as a list of ``LgTvConfig`` records."""

    def deserialize_device(self, data: dict) -> LgTvConfig | None:
        """Load one record, skipping records without a valid MAC address."""
        device = self.deserialize_device_auto(data, LgTvConfig)
        if device is None:
            return None
        mac = normalize_mac(device.identifier)
        if mac == UNKNOWN_MAC:
            _LOG.warning("Ignoring configured device without MAC address: %s", data)
            return None
        device.identifier = mac
        return device

    @property
    def addresses(self) -> list[str]:
        """Return the configured TV addresses."""
        addresses = []
        for device in self.all():
            if device.address and device.address not in addresses:
                addresses.append(device.address)
        return addresses


class PairingKeys:
    """Pairing key store backed by the configuration records."""

    def __init__(self, config: LgTvConfigManager):
        """Create instance."""
        self._config = config
        self._lock = asyncio.Lock()

    @property
    def config(self) -> LgTvConfigManager:
        """Return the configuration records."""
        return self._config

    async def get(self, mac: str) -> str | None:
        """Return the pairing key of the TV with the given MAC address, if any."""
        device = self._config.get(normalize_mac(mac))
        return device.token if device is not None else None

    async def put(
        self, mac: str, key: str, address: str = "", name: str = DEFAULT_NAME
    ) -> None:
        """
        Persist a pairing key for the TV with the given MAC address.

        The in-memory record is rolled back if the file cannot be written.

        :raises KeyStoreError: if the key could not be persisted.
        """
        mac = normalize_mac(mac)
        if mac == UNKNOWN_MAC:
            raise KeyStoreError("Cannot store a pairing key without MAC address")

        async with self._lock:
            previous = self._config.get(mac)
            if previous is not None:
                updated = dataclasses.replace(
                    previous,
                    token=key,
                    address=address or previous.address,
                    name=name if name != DEFAULT_NAME else previous.name,
                )
                if not self._config.update(updated):
                    self._config.update(previous)
                    raise KeyStoreError(f"Cannot write the config file for {mac}")
            else:
                record = LgTvConfig(identifier=mac, name=name, address=address, token=key)
                self._config.add_or_update(record)
                if not self._config.store():
                    self._config.remove(mac)
                    raise KeyStoreError(f"Cannot write the config file for {mac}")
        _LOG.debug("Stored pairing key for %s", mac)
