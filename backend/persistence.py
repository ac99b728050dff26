"""
Client-side persistence: remote endpoint first, local JSON file as fallback.

Persistence is best-effort. Nothing here raises into the editing flow;
failures are logged and surface as the gateway's `degraded` flag and
`warning` text for the view to display.

Saves run on a background SaveWorker so an edit never waits on the network.
Rapid edits coalesce: only the newest pending snapshot is written and at
most one write is in flight at a time.
"""

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import httpx

from .schemas import AppData

logger = logging.getLogger(__name__)

REASON_EDIT = "edit"
REASON_IMPORT = "import"

STATUS_OK = "ok"
STATUS_LOCAL = "local"        # remote unreachable, local fallback in use
STATUS_UNSAVED = "unsaved"    # neither tier usable

WARNINGS = {
    STATUS_LOCAL: "Database not accessible. Data will not persist.",
    STATUS_UNSAVED: "Storage unavailable. Changes will not be saved.",
}


class StorageError(Exception):
    """A durable tier could not be read or written."""


def _from_stored(payload, source: str) -> AppData:
    try:
        return AppData.from_payload(payload)
    except (ValueError, TypeError, OverflowError) as e:
        raise StorageError(f"Unusable document from {source}: {e}") from e


class DurableStore(ABC):
    """One persistence tier."""

    name = "durable"

    @abstractmethod
    def read(self) -> Optional[AppData]:
        """Stored document, None when this tier holds nothing. Raises StorageError."""

    @abstractmethod
    def write(self, data: AppData, reason: str = REASON_EDIT) -> None:
        """Replace the stored document. Raises StorageError."""


class RemoteStore(DurableStore):
    """The server's /api/data endpoints, over an authenticated httpx.Client."""

    name = "remote"

    def __init__(self, client: httpx.Client, path: str = "/api/data"):
        self.client = client
        self.path = path

    def read(self) -> Optional[AppData]:
        try:
            response = self.client.get(self.path, follow_redirects=False)
        except httpx.HTTPError as e:
            raise StorageError(f"GET {self.path} failed: {e}") from e
        if response.status_code != 200:
            raise StorageError(f"GET {self.path} returned {response.status_code}")
        try:
            payload = response.json()
        except ValueError as e:
            raise StorageError(f"GET {self.path} returned invalid JSON") from e
        return _from_stored(payload, f"GET {self.path}")

    def write(self, data: AppData, reason: str = REASON_EDIT) -> None:
        try:
            response = self.client.post(
                self.path,
                json=data.to_payload(),
                params={"reason": reason},
                follow_redirects=False,
            )
        except httpx.HTTPError as e:
            raise StorageError(f"POST {self.path} failed: {e}") from e
        if response.status_code != 200:
            raise StorageError(f"POST {self.path} returned {response.status_code}")


class LocalStore(DurableStore):
    """Best-effort JSON file on the editing machine."""

    name = "local"

    def __init__(self, path):
        self.path = Path(path)

    def read(self) -> Optional[AppData]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Reading {self.path} failed: {e}") from e
        return _from_stored(payload, str(self.path))

    def write(self, data: AppData, reason: str = REASON_EDIT) -> None:
        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data.to_payload(), f, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StorageError(f"Writing {self.path} failed: {e}") from e


class PersistenceGateway:
    """
    Two-tier writer/reader. `remote` is tried first, `local` second.
    Either tier may be None (e.g. running fully offline).
    """

    def __init__(self, remote: Optional[DurableStore], local: Optional[DurableStore]):
        self.remote = remote
        self.local = local
        self.status = STATUS_OK
        self._lock = threading.Lock()

    @property
    def degraded(self) -> bool:
        return self.status != STATUS_OK

    @property
    def warning(self) -> Optional[str]:
        return WARNINGS.get(self.status)

    def _set_status(self, status: str) -> None:
        if status != self.status:
            if status == STATUS_OK:
                logger.info("Persistence restored")
            else:
                logger.warning("Persistence degraded: %s", WARNINGS[status])
        self.status = status

    def save(self, data: AppData, reason: str = REASON_EDIT) -> bool:
        """Write through the first tier that works. True if the remote accepted it."""
        with self._lock:
            if self.remote is not None:
                try:
                    self.remote.write(data, reason)
                    self._set_status(STATUS_OK)
                    return True
                except StorageError as e:
                    logger.warning("Remote save failed, falling back to local: %s", e)

            if self.local is not None:
                try:
                    self.local.write(data, reason)
                    self._set_status(STATUS_LOCAL)
                    return False
                except StorageError as e:
                    logger.error("Local save failed: %s", e)

            self._set_status(STATUS_UNSAVED)
            return False

    def load(self) -> AppData:
        """Remote document, else the local copy, else built-in defaults."""
        with self._lock:
            if self.remote is not None:
                try:
                    data = self.remote.read()
                    self._set_status(STATUS_OK)
                    return data if data is not None else AppData()
                except StorageError as e:
                    logger.warning("Remote load failed, falling back to local: %s", e)

            if self.local is not None:
                try:
                    data = self.local.read()
                    self._set_status(STATUS_LOCAL if self.remote is not None else STATUS_OK)
                    return data if data is not None else AppData()
                except StorageError as e:
                    logger.error("Local load failed: %s", e)

            self._set_status(STATUS_UNSAVED)
            return AppData()


class SaveWorker:
    """Background thread that writes the newest submitted snapshot."""

    def __init__(self, gateway: PersistenceGateway, name: str = "save-worker"):
        self.gateway = gateway
        self.saves = 0
        self._cond = threading.Condition()
        self._pending: Optional[tuple[AppData, str]] = None
        self._busy = False
        self._closed = False
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def submit(self, data: AppData, reason: str = REASON_EDIT) -> None:
        """Queue a snapshot and return immediately. Replaces any snapshot not yet written."""
        with self._cond:
            if self._closed:
                logger.warning("Save worker is closed, dropping snapshot (%s)", reason)
                return
            # Coalescing must not drop the import-backup request of an earlier snapshot
            if self._pending is not None and self._pending[1] == REASON_IMPORT:
                reason = REASON_IMPORT
            self._pending = (data, reason)
            self._cond.notify_all()

    @property
    def idle(self) -> bool:
        with self._cond:
            return self._pending is None and not self._busy

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Block until everything submitted so far is written. False on timeout."""
        with self._cond:
            return self._cond.wait_for(
                lambda: self._pending is None and not self._busy, timeout
            )

    def close(self, timeout: Optional[float] = None) -> None:
        self.flush(timeout)
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        self._thread.join(timeout)

    def _run(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._pending is not None or self._closed)
                if self._pending is None:
                    return
                data, reason = self._pending
                self._pending = None
                self._busy = True
            try:
                self.gateway.save(data, reason)
            except Exception:
                logger.exception("Unexpected error while saving")
            finally:
                with self._cond:
                    self._busy = False
                    self.saves += 1
                    self._cond.notify_all()
