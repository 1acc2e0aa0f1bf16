import asyncio

from const import DeviceIdentity, Endpoints, Events, Properties
from driver import LgTvIntegration
from fakes import MAC, FakeNetwork, FakeStore, TransportFactory
from manager import KnownDevices, SessionManager
from ucapi import StatusCodes, media_player
from ucapi.media_player import Attributes as MediaAttributes
from ucapi.media_player import States as MediaStates
from ucapi.remote import Attributes as RemoteAttributes
from ucapi.remote import Commands as RemoteCommands
from ucapi.remote import States as RemoteStates


class FakeEntities:
    def __init__(self):
        self.entities = {}
        self.updates = []

    def contains(self, entity_id):
        return entity_id in self.entities

    def get(self, entity_id):
        return self.entities.get(entity_id)

    def add(self, entity):
        self.entities[entity.id] = entity

    def remove(self, entity_id):
        self.entities.pop(entity_id, None)

    def update_attributes(self, entity_id, attributes):
        self.updates.append((entity_id, attributes))


class StaleEntity:
    def __init__(self, entity_id):
        self.id = entity_id


class FakeApi:
    def __init__(self):
        self.available_entities = FakeEntities()
        self.configured_entities = FakeEntities()


def _setup():
    api = FakeApi()
    factory = TransportFactory()
    manager = SessionManager(
        KnownDevices(), FakeStore(), FakeNetwork(), transport_factory=factory
    )
    integration = LgTvIntegration(api, manager)
    return api, manager, integration, factory


def test_device_lifecycle_registers_entities():
    async def run():
        api, manager, integration, _ = _setup()
        session = await manager.connect(DeviceIdentity(MAC, "192.0.2.5", "Den"))
        media_player_id, remote_id = integration.entity_ids(session.identifier)
        assert sorted(api.available_entities.entities) == sorted(
            [media_player_id, remote_id]
        )

        await manager.disconnect(MAC)
        assert api.available_entities.entities == {}

    asyncio.run(run())


def test_updates_reach_configured_entities():
    async def run():
        api, manager, integration, _ = _setup()
        session = await manager.connect(DeviceIdentity(MAC, "192.0.2.5", "Den"))
        media_player_id, remote_id = integration.entity_ids(session.identifier)
        for entity_id in (media_player_id, remote_id):
            api.configured_entities.add(api.available_entities.entities[entity_id])

        session.set_on(False)
        session.events.emit(Events.UPDATE, session.identifier, {Properties.VOLUME: 4})

        assert api.configured_entities.updates == [
            (media_player_id, {MediaAttributes.STATE: MediaStates.OFF}),
            (remote_id, {RemoteAttributes.STATE: RemoteStates.OFF}),
            (media_player_id, {MediaAttributes.VOLUME: 4}),
        ]
        await manager.close()

    asyncio.run(run())


def test_unsubscribing_all_entities_removes_device():
    async def run():
        api, manager, integration, _ = _setup()
        session = await manager.connect(DeviceIdentity(MAC, "192.0.2.5", "Den"))
        media_player_id, remote_id = integration.entity_ids(session.identifier)

        await integration.on_unsubscribe_entities([media_player_id])
        assert manager.get(MAC) is session

        await integration.on_unsubscribe_entities([media_player_id, remote_id])
        assert manager.get(MAC) is None
        assert MAC not in manager._known

    asyncio.run(run())


def test_reconnect_rebinds_configured_entities():
    async def run():
        api, manager, integration, factory = _setup()
        session = await manager.connect(DeviceIdentity(MAC, "192.0.2.5", "Den"))
        media_player_id, remote_id = integration.entity_ids(session.identifier)
        for entity_id in (media_player_id, remote_id):
            api.configured_entities.add(api.available_entities.entities[entity_id])
        player = api.configured_entities.entities[media_player_id]
        remote = api.configured_entities.entities[remote_id]

        new_session = await manager.replace(DeviceIdentity(MAC, "192.0.2.9", "Den"))
        assert new_session is not session
        assert api.available_entities.entities[media_player_id] is player
        assert api.configured_entities.entities[remote_id] is remote

        status = await player.media_player_cmd_handler(
            player, media_player.Commands.MUTE_TOGGLE, None
        )
        assert status == StatusCodes.OK
        assert (Endpoints.SET_MUTE, {"mute": True}) in factory.created[1].requests
        assert (Endpoints.SET_MUTE, {"mute": True}) not in factory.created[0].requests

        status = await remote.command(RemoteCommands.SEND_CMD, {"command": "Enter"})
        assert status == StatusCodes.OK
        assert (Endpoints.SEND_ENTER, None) in factory.created[1].requests

        api.configured_entities.updates.clear()
        session.events.emit(Events.UPDATE, session.identifier, {Properties.VOLUME: 4})
        assert api.configured_entities.updates == []
        new_session.events.emit(
            Events.UPDATE, new_session.identifier, {Properties.VOLUME: 7}
        )
        assert api.configured_entities.updates == [
            (media_player_id, {MediaAttributes.VOLUME: 7})
        ]
        await manager.close()

    asyncio.run(run())


def test_device_added_replaces_stale_configured_entity():
    async def run():
        api, manager, integration, _ = _setup()
        media_player_id, _ = integration.entity_ids(f"lg-tv-{MAC}")
        api.configured_entities.add(StaleEntity(media_player_id))

        await manager.connect(DeviceIdentity(MAC, "192.0.2.5", "Den"))

        configured = api.configured_entities.entities[media_player_id]
        assert configured is api.available_entities.entities[media_player_id]
        assert api.configured_entities.updates[0] == (
            media_player_id,
            {
                MediaAttributes.STATE: MediaStates.ON,
                MediaAttributes.VOLUME: 10,
                MediaAttributes.MUTED: False,
                MediaAttributes.SOURCE: "Netflix",
            },
        )
        await manager.close()

    asyncio.run(run())
