# tests/test_store.py
import json
import os
import stat
import threading

import pytest
from cryptography.fernet import Fernet

from dashboard.crypto import FernetCipher, load_or_create_key
from dashboard.errors import MigrationWarning, PersistenceError, ValidationError
from dashboard.schema import CURRENT_SCHEMA_VERSION, get_defaults
from dashboard.sources import PollGuard
from dashboard.store import ConfigStore


@pytest.fixture
def key():
    return Fernet.generate_key()


@pytest.fixture
def store(tmp_path, key):
    return ConfigStore(tmp_path / "config.json.enc", FernetCipher(key))


def test_first_boot_writes_defaults(store):
    doc = store.load()
    assert doc == get_defaults()
    assert store.revision == 1
    assert store.path.exists()


def test_file_is_encrypted(store):
    store.update({"widgets": {"weather": {"apiKey": "TOPSECRET"}}})
    raw = store.path.read_text(encoding="utf-8")
    assert "TOPSECRET" not in raw
    envelope = json.loads(raw)
    assert envelope["schemaVersion"] == CURRENT_SCHEMA_VERSION
    assert envelope["revision"] == 2
    assert isinstance(envelope["data"], str)


def test_reload_from_disk(store, key):
    store.update({"widgets": {"weather": {"apiKey": "K", "location": "Bergen"}}})
    again = ConfigStore(store.path, FernetCipher(key))
    doc = again.load()
    assert doc["widgets"]["weather"]["apiKey"] == "K"
    assert doc["widgets"]["weather"]["location"] == "Bergen"
    assert again.revision == 2


def test_secret_survives_blank_update(store):
    store.update({"widgets": {"weather": {"apiKey": "K"}}})
    store.update({"widgets": {"weather": {"apiKey": "", "units": "metric"}}})
    w = store.load()["widgets"]["weather"]
    assert w["apiKey"] == "K"
    assert w["units"] == "metric"


def test_validation_error_leaves_state_untouched(store):
    before = store.load()
    rev = store.revision
    raw_before = store.path.read_bytes()
    with pytest.raises(ValidationError):
        store.update({"layouts": {"portrait": {"clock": {"width": 0}}}})
    assert store.load() == before
    assert store.revision == rev
    assert store.path.read_bytes() == raw_before


def test_load_returns_a_copy(store):
    doc = store.load()
    doc["widgets"]["clock"]["enabled"] = False
    assert store.load()["widgets"]["clock"]["enabled"] is True


def test_wrong_key_is_persistence_error(store):
    store.load()
    other = ConfigStore(store.path, FernetCipher(Fernet.generate_key()))
    with pytest.raises(PersistenceError):
        other.load()


def test_write_failure_keeps_previous_snapshot(store, monkeypatch):
    store.load()
    before = store.load()

    def fail(*_a, **_k):
        raise OSError("disk full")

    monkeypatch.setattr("dashboard.store._atomic_write", fail)
    with pytest.raises(PersistenceError):
        store.update({"widgets": {"clock": {"format24h": False}}})
    assert store.load() == before
    assert store.revision == 1


def test_legacy_plaintext_document_is_migrated(tmp_path, key):
    path = tmp_path / "config.json"
    legacy = {
        "theme": "light",
        "widgets": {"clock": {"enabled": True, "gridPosition": {"x": 0, "y": 0, "width": 2, "height": 1}}},
    }
    path.write_text(json.dumps(legacy), encoding="utf-8")
    store = ConfigStore(path, FernetCipher(key))
    doc = store.load()
    assert doc["layouts"]["portrait"]["clock"] == {"x": 0, "y": 0, "width": 2, "height": 1}
    assert doc["globals"]["theme"] == "light"
    # lagres kryptert ved første skriving
    store.update({})
    assert "gridPosition" not in path.read_text(encoding="utf-8")
    assert "data" in json.loads(path.read_text(encoding="utf-8"))


def test_commit_listeners_receive_revision(store):
    store.load()
    seen = []
    store.subscribe(lambda doc, rev: seen.append((rev, doc["widgets"]["clock"]["format24h"])))
    store.update({"widgets": {"clock": {"format24h": False}}})
    assert seen == [(2, False)]


def test_failing_listener_does_not_break_update(store):
    def bad(_doc, _rev):
        raise RuntimeError("listener bug")

    store.subscribe(bad)
    doc = store.update({"widgets": {"clock": {"format24h": False}}})
    assert doc["widgets"]["clock"]["format24h"] is False


def test_stale_poll_result_is_discarded(store):
    store.update({"widgets": {"weather": {"enabled": True}}})
    polls = PollGuard(store)
    ticket = polls.begin("weather")
    store.update({"widgets": {"weather": {"location": "Tromsø"}}})
    assert polls.complete(ticket) is False

    fresh = polls.begin("weather")
    assert polls.complete(fresh) is True


def test_poll_spanning_a_config_change_returns_nothing(store):
    store.update({"widgets": {"weather": {"enabled": True}}})
    polls = PollGuard(store)

    def fetch():
        # konfigurasjonen endres mens kallet pågår
        store.update({"widgets": {"weather": {"units": "metric"}}})
        return {"temp": 3}

    assert polls.poll("weather", "", fetch) is None
    assert polls.poll("weather", "", lambda: {"temp": 4}) == {"temp": 4}


def test_poll_for_disabled_widget_is_discarded(store):
    polls = PollGuard(store)
    assert polls.poll("weather", "", lambda: {"temp": 1}) is None


def test_poll_discarded_when_widget_disabled_mid_flight(store):
    store.update({"widgets": {"weather": {"enabled": True}}})
    polls = PollGuard(store)
    ticket = polls.begin("weather")
    store.update({"widgets": {"weather": {"enabled": False}}})
    assert polls.complete(ticket) is False


def test_snapshot_pairs_revision_with_document(store):
    store.update({"widgets": {"clock": {"format24h": False}}})
    revision, doc = store.snapshot()
    assert revision == 2
    assert doc["widgets"]["clock"]["format24h"] is False
    doc["widgets"]["clock"]["format24h"] = True
    assert store.load()["widgets"]["clock"]["format24h"] is False


def test_concurrent_updates_are_serialized(store):
    store.load()
    seen = []
    store.subscribe(lambda _doc, rev: seen.append(rev))
    n = 12
    barrier = threading.Barrier(n)
    errors = []

    def worker(i):
        barrier.wait()
        try:
            store.update({"widgets": {f"extra{i}": {"enabled": False, "label": i}}})
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert seen == list(range(2, n + 2))
    assert store.revision == n + 1
    widgets = store.load()["widgets"]
    assert all(widgets[f"extra{i}"]["label"] == i for i in range(n))


def test_schema_version_cannot_decrease(store):
    store.load()
    before = store.load()
    partial = {"widgets": {"clock": {"gridPosition": {"col": 0, "row": 0, "colSpan": 2}}}}
    with pytest.warns(MigrationWarning):
        with pytest.raises(ValidationError) as ei:
            store.update(partial)
    assert "schemaVersion" in ei.value.fields
    assert store.load() == before
    assert store.revision == 1


def test_legacy_small_grid_document_stays_editable(tmp_path, key):
    path = tmp_path / "legacy.json"
    legacy = {
        "theme": "dark",
        "gridSize": {"columns": 4, "rows": 3},
        "widgets": {
            "clock": {"enabled": True, "gridPosition": {"x": 0, "y": 0, "width": 2, "height": 1}},
            "calendar": {"enabled": True, "gridPosition": {"x": 2, "y": 0, "width": 2, "height": 3}},
        },
    }
    path.write_text(json.dumps(legacy), encoding="utf-8")
    store = ConfigStore(path, FernetCipher(key))
    doc = store.update({"globals": {"theme": "light"}})
    assert doc["globals"]["theme"] == "light"
    assert doc["layouts"]["portrait"]["calendar"] == {"x": 2, "y": 0, "width": 2, "height": 3}
    assert doc["globals"]["gridSize"]["landscape"] == {"columns": 4, "rows": 3}


def test_key_file_created_private(tmp_path):
    path = tmp_path / "keys" / ".dashboard-key"
    key = load_or_create_key(path)
    assert path.read_bytes().strip() == key
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
    assert load_or_create_key(path) == key
