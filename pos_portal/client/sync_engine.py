from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from pos_portal.client.queue_store import LocalQueueStore
from pos_portal.client.transport import SyncTransport
from pos_portal.errors import ConflictError, NotFoundError, PosError, StorageUnavailable, SyncInProgress, ValidationError
from pos_portal.timeutils import now_utc

logger = logging.getLogger(__name__)

_REMOTE_ERRORS: dict[str, type[PosError]] = {
    cls.__name__: cls for cls in (ValidationError, ConflictError, NotFoundError)
}


@dataclass(frozen=True)
class SyncedRecord:
    local_id: str
    server_id: int
    invoice_number: str


@dataclass(frozen=True)
class FailedRecord:
    local_id: str
    error_message: str


@dataclass
class SyncResult:
    synced: list[SyncedRecord] = field(default_factory=list)
    failed: list[FailedRecord] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed

    @property
    def synced_count(self) -> int:
        return len(self.synced)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    def as_dict(self) -> dict:
        return {
            'success': self.success,
            'syncedCount': self.synced_count,
            'failedCount': self.failed_count,
            'synced': [
                {'localId': r.local_id, 'serverId': r.server_id, 'invoiceNumber': r.invoice_number}
                for r in self.synced
            ],
            'failed': [{'localId': r.local_id, 'errorMessage': r.error_message} for r in self.failed],
        }


def _acknowledgement(response: dict, local_id: str) -> SyncedRecord:
    details = response.get('details') or {}
    for entry in details.get('synced') or []:
        if str(entry.get('localId')) == local_id:
            return SyncedRecord(
                local_id=local_id,
                server_id=int(entry['serverId']),
                invoice_number=str(entry['invoiceNumber']),
            )
    for entry in details.get('failed') or []:
        if str(entry.get('localId')) == local_id:
            error_cls = _REMOTE_ERRORS.get(str(entry.get('errorType')), PosError)
            raise error_cls(str(entry.get('error') or 'Failed to sync'))
    raise PosError('Server did not acknowledge the transaction')


class SyncEngine:
    """Drains a LocalQueueStore against the server, oldest sale first.

    Only one pass runs at a time; a second caller gets SyncInProgress
    instead of racing over the same queue contents.
    """

    def __init__(
        self,
        queue: LocalQueueStore,
        transport: SyncTransport,
        *,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.queue = queue
        self.transport = transport
        self._clock = clock
        self._guard = threading.Lock()

    @property
    def in_flight(self) -> bool:
        return self._guard.locked()

    def sync_all(self, store_id: str, cashier_id: int) -> SyncResult:
        if not self._guard.acquire(blocking=False):
            raise SyncInProgress('A sync pass is already running')
        try:
            return self._drain(store_id, cashier_id)
        finally:
            self._guard.release()

    def _drain(self, store_id: str, cashier_id: int) -> SyncResult:
        result = SyncResult()
        # Snapshot: sales queued during this pass wait for the next one.
        pending = self.queue.list()
        for transaction in pending:
            local_id = str(transaction.get('localId'))
            try:
                response = self.transport.post_sync(
                    {'transactions': [transaction], 'storeId': store_id, 'cashierId': cashier_id}
                )
                record = _acknowledgement(response, local_id)
            except PosError as exc:
                logger.warning('Offline transaction %s stays queued: %s', local_id, exc)
                result.failed.append(FailedRecord(local_id=local_id, error_message=str(exc)))
                continue

            try:
                self.queue.remove(local_id)
            except StorageUnavailable:
                # Committed server-side; it will be replayed on the next pass.
                logger.exception('Could not drop synced transaction %s from the local queue', local_id)
            result.synced.append(record)

        if result.synced:
            try:
                self.queue.record_sync(self._clock())
            except StorageUnavailable:
                logger.exception('Could not record the last sync time')
        logger.info('Sync pass: %d synced, %d still queued', result.synced_count, result.failed_count)
        return result


class AutoSync:
    """Background timer that runs SyncEngine passes while the server is reachable.

    ``notify_online`` after a period offline wakes the loop for an immediate
    pass; every trigger goes through ``SyncEngine.sync_all``.
    """

    def __init__(
        self,
        engine: SyncEngine,
        *,
        store_id: str,
        cashier_id: int,
        interval_seconds: float = 60,
        is_online: Callable[[], bool] | None = None,
    ) -> None:
        self.engine = engine
        self.store_id = store_id
        self.cashier_id = cashier_id
        self.interval_seconds = interval_seconds
        self._is_online = is_online or engine.transport.ping
        self._online: bool | None = None
        self._stop = threading.Event()
        self._wake = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> SyncResult | None:
        if not self._is_online():
            self._online = False
            return None
        self._online = True
        try:
            result = self.engine.sync_all(self.store_id, self.cashier_id)
        except SyncInProgress:
            logger.debug('Auto-sync skipped: a pass is already running')
            return None
        except Exception:
            logger.exception('Auto-sync pass failed')
            return None
        if result.synced_count:
            logger.info('Auto-sync: %d transactions synced', result.synced_count)
        return result

    def notify_offline(self) -> None:
        self._online = False

    def notify_online(self) -> None:
        came_back = self._online is not True
        self._online = True
        if not came_back:
            return
        if self.running:
            self._wake.set()
        else:
            self.tick()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name='pos-auto-sync', daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        self._wake.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        self.tick()
        while not self._stop.is_set():
            self._wake.wait(self.interval_seconds)
            self._wake.clear()
            if self._stop.is_set():
                break
            self.tick()
