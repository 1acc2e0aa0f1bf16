"""
This module implements a Remote Two integration driver for LG webOS TV devices.

:license: Mozilla Public License Version 2.0, see LICENSE for more details.
"""

import asyncio
import logging
import os
from typing import Any

import ucapi
from config import LgTvConfigManager, PairingKeys
from const import Events
from discover import LgTvDiscovery
from manager import KnownDevices, SessionManager
from media_player import LgTvMediaPlayer, media_player_attributes
from network import NetworkProbe
from remote import LgTvRemote, remote_attributes
from tv import LgTv
from ucapi import EntityTypes
from ucapi_framework import create_entity_id, get_config_path

_LOG = logging.getLogger("driver")  # avoid having __main__ in log messages


class LgTvIntegration:
    """Publishes TV sessions as integration entities and routes their updates."""

    def __init__(self, api: ucapi.IntegrationAPI, manager: SessionManager):
        """Create instance."""
        self._api = api
        self._manager = manager
        self._entities: dict[str, tuple[LgTvMediaPlayer, LgTvRemote]] = {}
        self._devices: dict[str, LgTv] = {}
        manager.events.on(Events.DEVICE_ADDED, self.on_device_added)
        manager.events.on(Events.DEVICE_REMOVED, self.on_device_removed)

    @staticmethod
    def entity_ids(device_id: str) -> tuple[str, str]:
        """Return the media-player and remote entity ids of a device."""
        return (
            create_entity_id(EntityTypes.MEDIA_PLAYER, device_id),
            create_entity_id(EntityTypes.REMOTE, device_id),
        )

    def on_device_added(self, device: LgTv) -> None:
        """
        Register the entities of a connected TV.

        A TV keeps its entities across sessions: after a reconnect the existing
        entities are bound to the new session, so configured entities keep working.
        """
        _LOG.info("[%s] Registering device %s", device.log_id, device.identifier)
        self._unbind(device.identifier)

        entities = self._entities.get(device.identifier)
        if entities is None:
            entities = (LgTvMediaPlayer(device), LgTvRemote(device))
            self._entities[device.identifier] = entities
        else:
            for entity in entities:
                entity.bind(device)

        for entity in entities:
            if self._api.available_entities.contains(entity.id):
                self._api.available_entities.remove(entity.id)
            self._api.available_entities.add(entity)
            configured = self._api.configured_entities.get(entity.id)
            if configured is not None and configured is not entity:
                self._api.configured_entities.remove(entity.id)
                self._api.configured_entities.add(entity)

        self._devices[device.identifier] = device
        device.events.on(Events.UPDATE, self.on_device_update)
        device.events.on(Events.ACTION, self.on_action_complete)
        self.on_device_update(device.identifier, device.values)

    def on_device_removed(self, device_id: str) -> None:
        """Unregister the entities of a removed TV."""
        _LOG.info("Unregistering device %s", device_id)
        self._unbind(device_id)
        for entity_id in self.entity_ids(device_id):
            if self._api.available_entities.contains(entity_id):
                self._api.available_entities.remove(entity_id)

    def _unbind(self, device_id: str) -> None:
        device = self._devices.pop(device_id, None)
        if device is not None:
            device.events.remove_listener(Events.UPDATE, self.on_device_update)
            device.events.remove_listener(Events.ACTION, self.on_action_complete)

    def on_device_update(self, device_id: str, update: dict[str, Any]) -> None:
        """Push changed TV properties to the configured entities."""
        media_player_id, remote_id = self.entity_ids(device_id)
        if self._api.configured_entities.contains(media_player_id):
            attributes = media_player_attributes(update)
            if attributes:
                self._api.configured_entities.update_attributes(
                    media_player_id, attributes
                )
        if self._api.configured_entities.contains(remote_id):
            attributes = remote_attributes(update)
            if attributes:
                self._api.configured_entities.update_attributes(remote_id, attributes)

    def on_action_complete(self, device_id: str, invocation) -> None:
        """Log the outcome of an action."""
        _LOG.debug(
            "Action %s on %s: %s", invocation.name, device_id, invocation.status
        )

    async def on_unsubscribe_entities(self, entity_ids: list[str]) -> None:
        """Remove TVs whose entities are all unsubscribed."""
        for device in self._manager.sessions:
            if set(self.entity_ids(device.identifier)) <= set(entity_ids):
                _LOG.info("[%s] All entities unsubscribed, removing", device.log_id)
                await self._manager.disconnect(device.mac_address)


async def main():
    """Start the Remote Two integration driver."""
    logging.basicConfig()

    level = os.getenv("UC_LOG_LEVEL", "DEBUG").upper()
    for name in (
        "tv",
        "driver",
        "config",
        "discover",
        "manager",
        "network",
        "transport",
        "media_player",
        "remote",
    ):
        logging.getLogger(name).setLevel(level)

    loop = asyncio.get_running_loop()
    api = ucapi.IntegrationAPI(loop)

    config = LgTvConfigManager(get_config_path(api.config_dir_path))

    network = NetworkProbe()
    known = KnownDevices()
    manager = SessionManager(
        known,
        PairingKeys(config),
        network,
        on_error=lambda err: _LOG.warning("Pairing key not persisted: %s", err),
        loop=loop,
    )
    integration = LgTvIntegration(api, manager)
    discovery = LgTvDiscovery(manager, known, network, addresses=config.addresses)

    @api.listens_to(ucapi.Events.CONNECT)
    async def on_connect() -> None:
        await discovery.start()
        await api.set_device_state(ucapi.DeviceStates.CONNECTED)

    @api.listens_to(ucapi.Events.DISCONNECT)
    async def on_disconnect() -> None:
        _LOG.debug("Remote disconnected, keeping TV sessions")

    @api.listens_to(ucapi.Events.ENTER_STANDBY)
    async def on_enter_standby() -> None:
        _LOG.debug("Remote entering standby, keeping TV sessions")

    @api.listens_to(ucapi.Events.EXIT_STANDBY)
    async def on_exit_standby() -> None:
        discovery.refresh()

    @api.listens_to(ucapi.Events.UNSUBSCRIBE_ENTITIES)
    async def on_unsubscribe_entities(entity_ids: list[str]) -> None:
        await integration.on_unsubscribe_entities(entity_ids)

    await api.init("driver.json")
    await discovery.start()

    try:
        await asyncio.Future()
    finally:
        await discovery.stop()
        await manager.close()


if __name__ == "__main__":
    asyncio.run(main())
