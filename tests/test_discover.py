import asyncio

from const import SSDP_SERVICE, Events, Properties, SessionState
from discover import LgTvDiscovery, LgTvSsdpDiscovery
from fakes import MAC, FakeNetwork, FakeStore, TransportFactory
from manager import KnownDevices, SessionManager
from ucapi_framework import DiscoveredDevice

SSDP_HEADERS = {
    "cache-control": "max-age=1800",
    "location": "http://192.0.2.5:1456/",
    "st": SSDP_SERVICE,
    "dlnadevicename.lge.com": "Living%20Room%20TV",
    "wakeup": "MAC=A8:23:FE:01:02:03;Timeout=10",
}


class FakeSsdp:
    def __init__(self, devices=None):
        self.devices = list(devices or [])
        self.searches = 0

    async def discover(self):
        self.searches += 1
        return list(self.devices)


def _tv(address="192.0.2.5", name="Bedroom TV", mac=MAC):
    return DiscoveredDevice(
        identifier=mac or address,
        name=name,
        address=address,
        extra_data={"mac_address": mac, "service": SSDP_SERVICE},
    )


def test_parse_ssdp_answer():
    device = LgTvSsdpDiscovery().parse_ssdp_device(SSDP_HEADERS)
    assert device.address == "192.0.2.5"
    assert device.name == "Living Room TV"
    assert device.identifier == "a8:23:fe:01:02:03"
    assert device.extra_data["mac_address"] == "a8:23:fe:01:02:03"


def test_parse_ssdp_answer_defaults():
    device = LgTvSsdpDiscovery().parse_ssdp_device(
        {"LOCATION": "http://192.0.2.7:1456/", "ST": SSDP_SERVICE}
    )
    assert device.address == "192.0.2.7"
    assert device.name == "LG webOS TV"
    assert device.identifier == "192.0.2.7"
    assert device.extra_data["mac_address"] is None


def test_parse_ssdp_answer_rejects_other_services():
    discovery = LgTvSsdpDiscovery()
    assert discovery.search_target == SSDP_SERVICE
    other = dict(SSDP_HEADERS, st="urn:schemas-upnp-org:device:MediaRenderer:1")
    assert discovery.parse_ssdp_device(other) is None
    without_location = {k: v for k, v in SSDP_HEADERS.items() if k != "location"}
    assert discovery.parse_ssdp_device(without_location) is None


def _make_discovery(network=None, factory=None, addresses=None):
    network = network or FakeNetwork({"192.0.2.5": MAC, "192.0.2.9": MAC})
    factory = factory or TransportFactory()
    known = KnownDevices()
    manager = SessionManager(known, FakeStore(), network, transport_factory=factory)
    events = []
    manager.events.on(Events.DEVICE_ADDED, lambda s: events.append(("added", s)))
    manager.events.on(
        Events.DEVICE_REMOVED, lambda device_id: events.append(("removed", device_id))
    )
    discovery = LgTvDiscovery(
        manager, known, network, addresses=addresses, ssdp=FakeSsdp()
    )
    return discovery, manager, factory, events


async def _drain(discovery):
    while discovery._tasks:
        await asyncio.gather(*list(discovery._tasks))


def test_configured_address_connects():
    async def run():
        discovery, manager, factory, events = _make_discovery()
        await discovery.scan_configured(["192.0.2.5"])

        session = manager.get(MAC)
        assert session is not None
        assert session.identifier == f"lg-tv-{MAC}"
        assert session.address == "192.0.2.5"
        assert session.values == {
            Properties.ON: True,
            Properties.VOLUME: 10,
            Properties.MUTE: False,
            Properties.ACTIVE_APP: "Netflix",
        }
        assert MAC in discovery.known
        assert len(events) == 1
        await manager.close()

    asyncio.run(run())


def test_address_change_reconnects_once():
    async def run():
        discovery, manager, factory, events = _make_discovery()
        await discovery.add_device("192.0.2.5", "Living Room")
        events.clear()

        await discovery.add_device("192.0.2.9")

        assert [kind for kind, _ in events] == ["removed", "added"]
        assert events[0][1] == f"lg-tv-{MAC}"
        session = manager.get(MAC)
        assert session.address == "192.0.2.9"
        assert session.name == "Living Room"
        assert factory.created[0].closed
        assert factory.open_transports() == [factory.created[1]]
        assert discovery.known.get(MAC).address == "192.0.2.9"
        await manager.close()

    asyncio.run(run())


def test_unresolvable_address_is_skipped():
    async def run():
        discovery, manager, factory, events = _make_discovery(network=FakeNetwork())
        await discovery.add_device("192.0.2.77")
        await discovery.add_device("tv.local")
        assert factory.created == []
        assert events == []
        assert len(discovery.known) == 0

    asyncio.run(run())


def test_live_session_at_same_address_is_kept():
    async def run():
        discovery, manager, factory, events = _make_discovery()
        await discovery.add_device("192.0.2.5")
        session = manager.get(MAC)
        updates = []
        session.events.on(Events.UPDATE, lambda device_id, u: updates.append(u))
        session.set_on(False)

        await discovery.add_device("192.0.2.5")

        assert len(factory.created) == 1
        assert len(events) == 1
        assert session.value(Properties.ON) is True
        assert updates == [{Properties.ON: False}, {Properties.ON: True}]
        await manager.close()

    asyncio.run(run())


def test_lost_connection_at_same_address_reconnects():
    async def run():
        discovery, manager, factory, events = _make_discovery()
        await discovery.add_device("192.0.2.5")
        factory.created[0].connected = False

        await discovery.add_device("192.0.2.5")

        assert [kind for kind, _ in events] == ["added", "removed", "added"]
        assert manager.get(MAC).is_connected
        assert len(factory.open_transports()) == 1
        await manager.close()

    asyncio.run(run())


def test_liveness_marks_unreachable_tv_off():
    async def run():
        network = FakeNetwork({"192.0.2.5": MAC})
        discovery, manager, factory, events = _make_discovery(network=network)
        await discovery.add_device("192.0.2.5")
        session = manager.get(MAC)
        factory.created[0].connected = False

        await discovery.check_liveness()

        assert network.probes == ["192.0.2.5"]
        assert session.value(Properties.ON) is False
        assert session.state == SessionState.DISCONNECTED
        assert len(factory.created) == 1
        await manager.close()

    asyncio.run(run())


def test_liveness_reconnects_reachable_tv():
    async def run():
        network = FakeNetwork({"192.0.2.5": MAC}, reachable={"192.0.2.5"})
        discovery, manager, factory, events = _make_discovery(network=network)
        await discovery.add_device("192.0.2.5")
        factory.created[0].connected = False

        await discovery.check_liveness()

        assert len(factory.created) == 2
        assert manager.get(MAC).is_connected
        assert [kind for kind, _ in events] == ["added", "removed", "added"]
        await manager.close()

    asyncio.run(run())


def test_liveness_skips_connected_tvs():
    async def run():
        network = FakeNetwork({"192.0.2.5": MAC})
        discovery, manager, _, _ = _make_discovery(network=network)
        await discovery.add_device("192.0.2.5")
        await discovery.check_liveness()
        assert network.probes == []
        await manager.close()

    asyncio.run(run())


def test_discovered_tv_filtering():
    async def run():
        network = FakeNetwork({"192.0.2.5": MAC})
        discovery, manager, factory, _ = _make_discovery(network=network)

        discovery.handle_discovered(_tv())
        await _drain(discovery)
        assert manager.get(MAC).name == "Bedroom TV"
        assert network.lookups == ["192.0.2.5"]

        discovery.handle_discovered(_tv())
        await _drain(discovery)
        assert network.lookups == ["192.0.2.5"]
        assert len(factory.created) == 1

        discovery.handle_discovered(_tv(mac=None))
        await _drain(discovery)
        assert network.lookups == ["192.0.2.5", "192.0.2.5"]
        assert len(factory.created) == 1
        await manager.close()

    asyncio.run(run())


def test_scan_network_connects_answering_tvs():
    async def run():
        discovery, manager, factory, _ = _make_discovery()
        discovery._ssdp.devices = [_tv("192.0.2.9", "Kitchen")]
        await discovery.scan_network()
        await _drain(discovery)
        assert discovery._ssdp.searches == 1
        assert manager.get(MAC).address == "192.0.2.9"
        assert manager.get(MAC).name == "Kitchen"
        await manager.close()

    asyncio.run(run())


def test_refresh_runs_all_scans():
    async def run():
        discovery, manager, factory, _ = _make_discovery(addresses=["192.0.2.5"])
        discovery.refresh()
        await _drain(discovery)
        assert discovery._ssdp.searches == 1
        assert manager.get(MAC) is not None
        await manager.close()

    asyncio.run(run())


def test_concurrent_scans_keep_one_session_per_mac():
    async def run():
        discovery, manager, factory, _ = _make_discovery()
        await asyncio.gather(
            discovery.add_device("192.0.2.5"),
            discovery.add_device("192.0.2.9"),
            discovery.add_device("192.0.2.5"),
            discovery.scan_configured(["192.0.2.9", "192.0.2.5"]),
        )
        assert len(factory.open_transports()) == 1
        assert len(manager.sessions) == 1
        await manager.close()
        assert factory.open_transports() == []

    asyncio.run(run())


def test_start_and_stop():
    async def run():
        discovery, manager, _, _ = _make_discovery(addresses=["192.0.2.5"])
        await discovery.start()
        await asyncio.sleep(0)
        await _drain(discovery)
        await discovery.stop()
        assert discovery._refresh_task is None
        assert manager.get(MAC) is not None
        await manager.close()

    asyncio.run(run())
