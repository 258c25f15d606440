from __future__ import annotations

import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from pos_portal.client.queue_store import PENDING_TRANSACTIONS_KEY, LocalQueueStore
from pos_portal.client.storage import FileKeyValueStore, MemoryKeyValueStore, open_local_storage
from pos_portal.errors import StorageUnavailable, ValidationError
from sqlite_support import sale_payload

FIXED_NOW = datetime(2026, 10, 19, 3, 0, tzinfo=timezone.utc)


class LocalQueueStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.queue = LocalQueueStore(MemoryKeyValueStore(), clock=lambda: FIXED_NOW)

    def test_enqueue_keeps_fifo_order_and_unique_ids(self) -> None:
        first = self.queue.enqueue(sale_payload(1, quantity=1))
        second = self.queue.enqueue(sale_payload(1, quantity=2))
        third = self.queue.enqueue(sale_payload(1, quantity=3))

        pending = self.queue.list()
        self.assertEqual([entry['items'][0]['quantity'] for entry in pending], [1, 2, 3])
        local_ids = [first['localId'], second['localId'], third['localId']]
        self.assertEqual(len(set(local_ids)), 3)
        self.assertTrue(all(local_id.startswith('offline_') for local_id in local_ids))
        self.assertEqual(self.queue.count(), 3)

    def test_enqueue_stamps_creation_time_unless_supplied(self) -> None:
        stamped = self.queue.enqueue(sale_payload(1))
        sold_at = datetime(2026, 10, 18, 23, 15, tzinfo=timezone.utc)
        kept = self.queue.enqueue(sale_payload(1, created_at=sold_at))
        self.assertEqual(stamped['createdAt'], FIXED_NOW.isoformat())
        self.assertEqual(kept['createdAt'], sold_at.isoformat())

    def test_enqueue_stores_wire_field_names(self) -> None:
        record = self.queue.enqueue(sale_payload(7, unit_price='12500'))
        self.assertEqual(record['paymentMethod'], 'CASH')
        self.assertEqual(record['items'][0]['productId'], 7)
        self.assertIn('unitPrice', record['items'][0])

    def test_invalid_transaction_is_rejected_and_not_queued(self) -> None:
        payload = sale_payload(1)
        payload['total'] = '1'
        with self.assertRaises(ValidationError):
            self.queue.enqueue(payload)
        self.assertEqual(self.queue.list(), [])

    def test_remove_is_idempotent(self) -> None:
        first = self.queue.enqueue(sale_payload(1, quantity=1))
        second = self.queue.enqueue(sale_payload(1, quantity=2))
        self.queue.remove(first['localId'])
        self.queue.remove(first['localId'])
        self.queue.remove('offline_unknown')
        self.assertEqual([entry['localId'] for entry in self.queue.list()], [second['localId']])

    def test_clear_empties_the_queue(self) -> None:
        self.queue.enqueue(sale_payload(1))
        self.queue.clear()
        self.assertEqual(self.queue.count(), 0)

    def test_last_sync_round_trips(self) -> None:
        self.assertIsNone(self.queue.last_sync())
        self.queue.record_sync()
        self.assertEqual(self.queue.last_sync(), FIXED_NOW)

    def test_non_list_storage_value_reads_as_empty(self) -> None:
        storage = MemoryKeyValueStore()
        storage.set(PENDING_TRANSACTIONS_KEY, {'unexpected': True})
        self.assertEqual(LocalQueueStore(storage).list(), [])


class QueueWithoutStorageTests(unittest.TestCase):
    def setUp(self) -> None:
        self.queue = LocalQueueStore(None)

    def test_reads_and_removals_are_no_ops(self) -> None:
        self.assertFalse(self.queue.available)
        self.assertEqual(self.queue.list(), [])
        self.assertEqual(self.queue.count(), 0)
        self.queue.remove('offline_1')
        self.queue.clear()
        self.queue.record_sync()
        self.assertIsNone(self.queue.last_sync())

    def test_enqueue_fails_loudly(self) -> None:
        with self.assertRaises(StorageUnavailable):
            self.queue.enqueue(sale_payload(1))

    def test_open_local_storage_without_directory(self) -> None:
        self.assertIsNone(open_local_storage(None))
        self.assertIsNone(open_local_storage(''))


class FileKeyValueStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.directory = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_queue_survives_a_restart(self) -> None:
        queue = LocalQueueStore(FileKeyValueStore(self.directory))
        record = queue.enqueue(sale_payload(1))

        reopened = LocalQueueStore(open_local_storage(self.directory))
        self.assertEqual([entry['localId'] for entry in reopened.list()], [record['localId']])

    def test_corrupt_file_raises_storage_unavailable(self) -> None:
        (self.directory / f'{PENDING_TRANSACTIONS_KEY}.json').write_text('{not json', encoding='utf-8')
        queue = LocalQueueStore(FileKeyValueStore(self.directory))
        with self.assertRaises(StorageUnavailable):
            queue.list()

    def test_remove_missing_key_is_harmless(self) -> None:
        store = FileKeyValueStore(self.directory)
        store.remove('absent')
        self.assertIsNone(store.get('absent'))

    def test_rejects_path_like_keys(self) -> None:
        store = FileKeyValueStore(self.directory)
        with self.assertRaises(ValueError):
            store.set('../escape', 1)


if __name__ == '__main__':
    unittest.main()
