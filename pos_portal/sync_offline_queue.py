from __future__ import annotations

import argparse

from pos_portal.client.queue_store import LocalQueueStore
from pos_portal.client.storage import open_local_storage
from pos_portal.client.sync_engine import SyncEngine
from pos_portal.client.transport import HttpSyncTransport
from pos_portal.config import settings
from pos_portal.store_config import ClientStoreConfig


def main() -> None:
    parser = argparse.ArgumentParser(description='Push sales queued while offline to the POS server.')
    parser.add_argument('--cashier-id', type=int, required=True, help='Cashier recorded on the synced sales.')
    parser.add_argument('--store-id', default=None, help='Store to sync into (defaults to STORE_ID).')
    parser.add_argument('--queue-dir', default=settings.offline_queue_dir, help='Local queue directory.')
    parser.add_argument('--server-url', default=settings.sync_server_url, help='POS server base URL.')
    parser.add_argument(
        '--discard',
        action='store_true',
        help='Delete every queued sale without syncing it.',
    )
    args = parser.parse_args()

    storage = open_local_storage(args.queue_dir)
    if storage is None:
        parser.error('--queue-dir or OFFLINE_QUEUE_DIR is required')
    queue = LocalQueueStore(storage)

    if args.discard:
        discarded = queue.count()
        queue.clear()
        print(f'Offline queue discarded: removed={discarded}')
        return

    transport = HttpSyncTransport(args.server_url, timeout_seconds=settings.sync_timeout_seconds)
    store_id = ClientStoreConfig(override=args.store_id, configured=settings.store_id).refresh_from_server(transport)
    engine = SyncEngine(queue, transport)
    result = engine.sync_all(store_id, args.cashier_id)
    print(f'Offline sync complete: synced={result.synced_count}, failed={result.failed_count}, pending={queue.count()}')
    for failure in result.failed:
        print(f'  {failure.local_id}: {failure.error_message}')


if __name__ == '__main__':
    main()
