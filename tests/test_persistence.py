"""
Persistence gateway tests — remote → local fallback, degraded warning, save worker.

Tests:
1-5.   PersistenceGateway.save fallback chain and warning state
6-9.   PersistenceGateway.load fallback chain
10-14. LocalStore file tier, non-finite nextId
15-19. RemoteStore over HTTP (real app + mocked transport)
20-23. SaveWorker coalescing / non-blocking submit / submit after close
"""

import httpx
import pytest

from backend.persistence import (
    LocalStore,
    PersistenceGateway,
    RemoteStore,
    SaveWorker,
    StorageError,
)
from backend.schemas import AppData, GlobalSettings, Job

from .fakes import BlockingStore


def _sample_data(name="Vase", next_id=2):
    return AppData(
        global_settings=GlobalSettings(printer_power=120),
        jobs=[Job(id=1, name=name, weight_g=30)],
        next_id=next_id,
    )


# ============================================================
# 1-5. save
# ============================================================

def test_save_goes_to_remote(remote_store, local_store):
    gateway = PersistenceGateway(remote_store, local_store)
    assert gateway.save(_sample_data()) is True
    assert len(remote_store.writes) == 1
    assert local_store.writes == []
    assert gateway.degraded is False
    assert gateway.warning is None


def test_save_falls_back_to_local(remote_store, local_store):
    remote_store.fail_writes = True
    gateway = PersistenceGateway(remote_store, local_store)
    assert gateway.save(_sample_data()) is False
    assert local_store.writes[0][0] == _sample_data()
    assert gateway.degraded is True
    assert "Data will not persist" in gateway.warning


def test_save_never_raises_when_both_tiers_fail(remote_store, local_store):
    remote_store.fail_writes = True
    local_store.fail_writes = True
    gateway = PersistenceGateway(remote_store, local_store)
    assert gateway.save(_sample_data()) is False
    assert gateway.status == "unsaved"
    assert "will not be saved" in gateway.warning


def test_successful_save_clears_warning(remote_store, local_store):
    remote_store.fail_writes = True
    gateway = PersistenceGateway(remote_store, local_store)
    gateway.save(_sample_data())
    assert gateway.degraded

    remote_store.fail_writes = False
    gateway.save(_sample_data())
    assert gateway.degraded is False
    assert gateway.warning is None


def test_save_passes_reason(remote_store, local_store):
    gateway = PersistenceGateway(remote_store, local_store)
    gateway.save(_sample_data(), reason="import")
    assert remote_store.writes[0][1] == "import"


# ============================================================
# 6-9. load
# ============================================================

def test_load_prefers_remote(remote_store, local_store):
    remote_store.data = _sample_data("from remote")
    local_store.data = _sample_data("from local")
    gateway = PersistenceGateway(remote_store, local_store)
    assert gateway.load().jobs[0].name == "from remote"
    assert gateway.degraded is False


def test_load_falls_back_to_local_and_warns(remote_store, local_store):
    remote_store.fail_reads = True
    local_store.data = _sample_data("from local")
    gateway = PersistenceGateway(remote_store, local_store)
    assert gateway.load().jobs[0].name == "from local"
    assert gateway.degraded is True
    assert gateway.warning == "Database not accessible. Data will not persist."


def test_load_defaults_when_nothing_stored(remote_store, local_store):
    remote_store.fail_reads = True
    gateway = PersistenceGateway(remote_store, local_store)
    data = gateway.load()
    assert data == AppData()
    assert data.global_settings.printer_power == 100


def test_load_defaults_when_both_tiers_unusable(remote_store, local_store):
    remote_store.fail_reads = True
    local_store.fail_reads = True
    gateway = PersistenceGateway(remote_store, local_store)
    assert gateway.load() == AppData()
    assert gateway.status == "unsaved"


# ============================================================
# 10-14. LocalStore
# ============================================================

def test_local_store_round_trip(tmp_path):
    store = LocalStore(tmp_path / "local" / "print-costs.json")
    assert store.read() is None
    store.write(_sample_data())
    assert store.read() == _sample_data()


def test_local_store_corrupt_file_raises_storage_error(tmp_path):
    path = tmp_path / "print-costs.json"
    path.write_text("{broken", encoding="utf-8")
    with pytest.raises(StorageError):
        LocalStore(path).read()


def test_local_store_unwritable_raises_storage_error(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file in the way", encoding="utf-8")
    with pytest.raises(StorageError):
        LocalStore(blocker / "print-costs.json").write(_sample_data())


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity", "1e400"])
def test_local_store_non_finite_next_id_defaults(tmp_path, literal):
    path = tmp_path / "print-costs.json"
    path.write_text(
        '{"globalSettings": {}, "jobs": [{"id": 3, "name": "Tag"}], "nextId": ' + literal + "}",
        encoding="utf-8",
    )
    data = PersistenceGateway(None, LocalStore(path)).load()
    assert data.next_id == 1
    assert data.jobs[0].name == "Tag"


def test_unusable_document_becomes_storage_error(tmp_path, monkeypatch):
    def unusable(cls, payload):
        raise OverflowError("int too large")

    path = tmp_path / "print-costs.json"
    path.write_text("{}", encoding="utf-8")
    monkeypatch.setattr(AppData, "from_payload", classmethod(unusable))
    with pytest.raises(StorageError):
        LocalStore(path).read()
    gateway = PersistenceGateway(None, LocalStore(path))
    assert gateway.load() == AppData()
    assert gateway.status == "unsaved"


# ============================================================
# 15-19. RemoteStore
# ============================================================

def test_remote_store_round_trip_against_app(logged_in_client):
    remote = RemoteStore(logged_in_client)
    assert remote.read() == AppData()
    remote.write(_sample_data())
    assert remote.read() == _sample_data()


def test_remote_store_unauthenticated_is_storage_error(client):
    remote = RemoteStore(client)
    with pytest.raises(StorageError):
        remote.read()
    with pytest.raises(StorageError):
        remote.write(_sample_data())


def test_remote_store_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler), base_url="http://printer-box")
    remote = RemoteStore(client)
    with pytest.raises(StorageError):
        remote.read()
    with pytest.raises(StorageError):
        remote.write(_sample_data())


def test_remote_store_non_finite_next_id_defaults():
    client = httpx.Client(
        transport=httpx.MockTransport(
            lambda request: httpx.Response(200, content=b'{"jobs": [], "nextId": NaN}')
        ),
        base_url="http://printer-box",
    )
    assert RemoteStore(client).read() == AppData()


def test_remote_store_server_error_falls_back(tmp_path):
    client = httpx.Client(
        transport=httpx.MockTransport(lambda request: httpx.Response(500, text="Error saving data")),
        base_url="http://printer-box",
    )
    local = LocalStore(tmp_path / "fallback.json")
    gateway = PersistenceGateway(RemoteStore(client), local)
    gateway.save(_sample_data())
    assert local.read() == _sample_data()
    assert gateway.degraded is True


# ============================================================
# 20-23. SaveWorker
# ============================================================

def test_worker_writes_submitted_snapshot(remote_store, local_store):
    worker = SaveWorker(PersistenceGateway(remote_store, local_store))
    worker.submit(_sample_data())
    assert worker.flush(timeout=5)
    worker.close(timeout=5)
    assert remote_store.writes == [(_sample_data(), "edit")]


def test_worker_coalesces_rapid_edits():
    remote = BlockingStore("remote")
    worker = SaveWorker(PersistenceGateway(remote, None))

    worker.submit(_sample_data("first"))
    assert remote.started.wait(5)
    # first write is in flight; these queue behind it and coalesce
    worker.submit(_sample_data("second"))
    worker.submit(_sample_data("third"))
    assert worker.idle is False

    remote.release.set()
    assert worker.flush(timeout=5)
    worker.close(timeout=5)

    names = [data.jobs[0].name for data, _ in remote.writes]
    assert names == ["first", "third"]


def test_worker_coalescing_keeps_import_reason():
    remote = BlockingStore("remote")
    worker = SaveWorker(PersistenceGateway(remote, None))

    worker.submit(_sample_data("edit before"))
    assert remote.started.wait(5)
    worker.submit(_sample_data("imported"), reason="import")
    worker.submit(_sample_data("edit after"))

    remote.release.set()
    assert worker.flush(timeout=5)
    worker.close(timeout=5)

    assert remote.writes[-1][0].jobs[0].name == "edit after"
    assert remote.writes[-1][1] == "import"


def test_submit_after_close_is_dropped(remote_store, local_store, caplog):
    worker = SaveWorker(PersistenceGateway(remote_store, local_store))
    worker.close(timeout=5)
    worker.submit(_sample_data())
    assert worker.idle
    assert remote_store.writes == []
    assert "dropping snapshot" in caplog.text
