import asyncio
import json

import pytest
from config import (
    KeyStoreError,
    LgTvConfig,
    LgTvConfigManager,
    PairingKeys,
    normalize_mac,
)
from const import UNKNOWN_MAC


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("AA:BB:CC:DD:EE:FF", "aa:bb:cc:dd:ee:ff"),
        ("a-b-c-d-e-f", "0a:0b:0c:0d:0e:0f"),
        (" aa:bb:cc:dd:ee:ff ", "aa:bb:cc:dd:ee:ff"),
        ("aa:bb:cc", UNKNOWN_MAC),
        ("not a mac", UNKNOWN_MAC),
        ("", UNKNOWN_MAC),
        (None, UNKNOWN_MAC),
    ],
)
def test_normalize_mac(raw, expected):
    assert normalize_mac(raw) == expected


def test_load_missing_file(tmp_path):
    config = LgTvConfigManager(str(tmp_path))
    assert list(config.all()) == []
    assert config.addresses == []


def test_load_corrupt_file(tmp_path):
    (tmp_path / "config.json").write_text("{not json", encoding="utf-8")
    config = LgTvConfigManager(str(tmp_path))
    assert list(config.all()) == []


def test_load_configuration(tmp_path):
    (tmp_path / "config.json").write_text(
        json.dumps(
            [
                {
                    "identifier": "AA:BB:CC:DD:EE:FF",
                    "name": "Den",
                    "address": "192.0.2.5",
                    "token": "key-1",
                },
                {"identifier": "bogus", "address": "192.0.2.6", "token": "key-2"},
                {"identifier": "11:22:33:44:55:66", "address": "192.0.2.5"},
            ]
        ),
        encoding="utf-8",
    )
    config = LgTvConfigManager(str(tmp_path))
    keys = PairingKeys(config)

    assert config.addresses == ["192.0.2.5"]
    assert config.get("aa:bb:cc:dd:ee:ff").name == "Den"
    assert asyncio.run(keys.get("AA:BB:CC:DD:EE:FF")) == "key-1"
    assert asyncio.run(keys.get("11:22:33:44:55:66")) is None
    assert asyncio.run(keys.get("bogus")) is None


def test_put_persists_new_record(tmp_path):
    keys = PairingKeys(LgTvConfigManager(str(tmp_path / "cfg")))
    asyncio.run(keys.put("AA:BB:CC:DD:EE:FF", "secret", "192.0.2.5", "Den"))

    with open(tmp_path / "cfg" / "config.json", encoding="utf-8") as f:
        data = json.load(f)
    assert data == [
        {
            "identifier": "aa:bb:cc:dd:ee:ff",
            "name": "Den",
            "address": "192.0.2.5",
            "token": "secret",
        }
    ]

    reloaded = PairingKeys(LgTvConfigManager(str(tmp_path / "cfg")))
    assert asyncio.run(reloaded.get("aa:bb:cc:dd:ee:ff")) == "secret"
    assert reloaded.config.addresses == ["192.0.2.5"]


def test_put_updates_existing_record(tmp_path):
    config = LgTvConfigManager(str(tmp_path))
    config.add_or_update(LgTvConfig("aa:bb:cc:dd:ee:ff", "Den", "192.0.2.5", "old"))
    keys = PairingKeys(config)

    asyncio.run(keys.put("aa:bb:cc:dd:ee:ff", "new", "192.0.2.9"))

    assert len(list(config.all())) == 1
    assert config.get("aa:bb:cc:dd:ee:ff") == LgTvConfig(
        "aa:bb:cc:dd:ee:ff", "Den", "192.0.2.9", token="new"
    )


def test_put_failure_rolls_back_new_record(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    keys = PairingKeys(LgTvConfigManager(str(blocker)))

    with pytest.raises(KeyStoreError):
        asyncio.run(keys.put("aa:bb:cc:dd:ee:ff", "secret"))
    assert asyncio.run(keys.get("aa:bb:cc:dd:ee:ff")) is None
    assert list(keys.config.all()) == []


def test_put_failure_keeps_previous_key(tmp_path):
    config = LgTvConfigManager(str(tmp_path))
    config.add_or_update(LgTvConfig("aa:bb:cc:dd:ee:ff", "Den", "192.0.2.5", "old"))
    keys = PairingKeys(config)
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    config._data_path = str(blocker)
    config._cfg_file_path = str(blocker / "config.json")

    with pytest.raises(KeyStoreError):
        asyncio.run(keys.put("aa:bb:cc:dd:ee:ff", "new"))
    assert asyncio.run(keys.get("aa:bb:cc:dd:ee:ff")) == "old"
    assert len(list(config.all())) == 1


def test_put_rejects_unknown_mac(tmp_path):
    keys = PairingKeys(LgTvConfigManager(str(tmp_path)))
    with pytest.raises(KeyStoreError):
        asyncio.run(keys.put("not a mac", "secret"))
