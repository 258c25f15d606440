from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime

from pos_portal.client.storage import KeyValueStore
from pos_portal.errors import StorageUnavailable
from pos_portal.schemas import TransactionIn, parse_payload
from pos_portal.timeutils import isoformat_utc, now_utc

PENDING_TRANSACTIONS_KEY = 'pos_pending_transactions'
LAST_SYNC_KEY = 'pos_last_sync'


class LocalQueueStore:
    """FIFO of sales recorded while the till cannot reach the server.

    Without durable storage (``storage is None``) reads and removals are
    no-ops, but ``enqueue`` raises StorageUnavailable so a sale is never lost
    silently. Every read-modify-write holds one lock: the auto-sync thread
    removes entries while the cashier keeps enqueuing.
    """

    def __init__(self, storage: KeyValueStore | None, *, clock: Callable[[], datetime] = now_utc) -> None:
        self._storage = storage
        self._clock = clock
        self._lock = threading.RLock()

    @property
    def available(self) -> bool:
        return self._storage is not None

    def _read(self) -> list[dict]:
        if self._storage is None:
            return []
        value = self._storage.get(PENDING_TRANSACTIONS_KEY)
        if not isinstance(value, list):
            return []
        return [entry for entry in value if isinstance(entry, dict)]

    def _write(self, pending: list[dict]) -> None:
        if self._storage is None:
            raise StorageUnavailable('No durable local storage in this context')
        self._storage.set(PENDING_TRANSACTIONS_KEY, pending)

    def _new_local_id(self, taken: set[str]) -> str:
        base = f'offline_{int(self._clock().timestamp() * 1000)}'
        local_id = base
        suffix = 1
        while local_id in taken:
            local_id = f'{base}_{suffix}'
            suffix += 1
        return local_id

    def enqueue(self, transaction: dict) -> dict:
        if self._storage is None:
            raise StorageUnavailable('No durable local storage in this context')
        payload = parse_payload(TransactionIn, transaction)
        record = payload.model_dump(mode='json', by_alias=True, exclude_none=True)
        record['createdAt'] = isoformat_utc(payload.created_at or self._clock())

        with self._lock:
            pending = self._read()
            record['localId'] = self._new_local_id({str(entry.get('localId')) for entry in pending})
            pending.append(record)
            self._write(pending)
        return record

    def list(self) -> list[dict]:
        with self._lock:
            return self._read()

    def count(self) -> int:
        with self._lock:
            return len(self._read())

    def remove(self, local_id: str) -> None:
        with self._lock:
            pending = self._read()
            remaining = [entry for entry in pending if entry.get('localId') != local_id]
            if len(remaining) == len(pending):
                return
            self._write(remaining)

    def clear(self) -> None:
        if self._storage is None:
            return
        with self._lock:
            self._storage.remove(PENDING_TRANSACTIONS_KEY)

    def record_sync(self, moment: datetime | None = None) -> None:
        if self._storage is None:
            return
        with self._lock:
            self._storage.set(LAST_SYNC_KEY, isoformat_utc(moment or self._clock()))

    def last_sync(self) -> datetime | None:
        if self._storage is None:
            return None
        value = self._storage.get(LAST_SYNC_KEY)
        return datetime.fromisoformat(value) if isinstance(value, str) else None
