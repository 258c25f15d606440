from __future__ import annotations

import unittest
from types import SimpleNamespace
from unittest.mock import patch

from pos_portal.cache import TTLCache
from pos_portal.errors import NetworkError
from pos_portal.store_config import (
    DEFAULT_STORE_ID,
    ClientStoreConfig,
    request_store_id_sources,
    resolve_request_store_id,
    resolve_store_id,
    subdomain_from_host,
)


def _request(headers: dict | None = None, cookies: dict | None = None) -> SimpleNamespace:
    return SimpleNamespace(headers=headers or {}, cookies=cookies or {})


class StoreIdResolutionTests(unittest.TestCase):
    def test_first_present_source_wins(self) -> None:
        sources = [('a', lambda: None), ('b', lambda: '  '), ('c', lambda: 'toko-c'), ('d', lambda: 'toko-d')]
        self.assertEqual(resolve_store_id(sources), 'toko-c')

    def test_default_when_nothing_is_set(self) -> None:
        self.assertEqual(resolve_store_id([('a', lambda: None)]), DEFAULT_STORE_ID)

    def test_subdomain_parsing(self) -> None:
        self.assertEqual(subdomain_from_host('toko1.example.com'), 'toko1')
        self.assertEqual(subdomain_from_host('toko1.example.com:8443'), 'toko1')
        self.assertIsNone(subdomain_from_host('www.example.com'))
        self.assertIsNone(subdomain_from_host('localhost:8000'))
        self.assertIsNone(subdomain_from_host('example'))
        self.assertIsNone(subdomain_from_host(None))

    def test_server_priority_is_header_subdomain_cookie_setting(self) -> None:
        request = _request(
            headers={'x-store-id': 'from-header', 'host': 'from-host.example.com'},
            cookies={'current-store-id': 'from-cookie'},
        )
        self.assertEqual([name for name, _ in request_store_id_sources(request)], ['header', 'subdomain', 'cookie', 'setting'])
        self.assertEqual(resolve_request_store_id(request), 'from-header')

        request.headers.pop('x-store-id')
        self.assertEqual(resolve_request_store_id(request), 'from-host')

        request.headers['host'] = 'localhost:8000'
        self.assertEqual(resolve_request_store_id(request), 'from-cookie')

        request.cookies.clear()
        with patch('pos_portal.store_config.settings.store_id', 'from-setting'):
            self.assertEqual(resolve_request_store_id(request), 'from-setting')

    def test_client_priority_is_override_cached_setting(self) -> None:
        config = ClientStoreConfig(configured='from-setting')
        self.assertEqual(config.store_id(), 'from-setting')
        config.set_cached('from-server')
        self.assertEqual(config.store_id(), 'from-server')
        config.override = 'from-override'
        self.assertEqual(config.store_id(), 'from-override')
        config.override = None
        config.clear_cached()
        self.assertEqual(config.store_id(), 'from-setting')
        self.assertEqual(ClientStoreConfig().store_id(), DEFAULT_STORE_ID)

class RefreshFromServerTests(unittest.TestCase):
    def _transport(self, reply: dict | None = None, error: Exception | None = None) -> SimpleNamespace:
        def health() -> dict:
            if error is not None:
                raise error
            return reply

        return SimpleNamespace(health=health)

    def test_server_store_id_is_cached(self) -> None:
        config = ClientStoreConfig(configured='from-setting')
        self.assertEqual(config.refresh_from_server(self._transport({'storeId': 'from-server'})), 'from-server')
        self.assertEqual(config.store_id(), 'from-server')

    def test_override_still_wins(self) -> None:
        config = ClientStoreConfig(override='from-override', configured='from-setting')
        self.assertEqual(config.refresh_from_server(self._transport({'storeId': 'from-server'})), 'from-override')

    def test_unreachable_server_keeps_cached_value(self) -> None:
        config = ClientStoreConfig(configured='from-setting')
        config.set_cached('from-server')
        with self.assertLogs('pos_portal.store_config', level='WARNING'):
            store_id = config.refresh_from_server(self._transport(error=NetworkError('down')))
        self.assertEqual(store_id, 'from-server')

    def test_reply_without_store_id_drops_cached_value(self) -> None:
        config = ClientStoreConfig(configured='from-setting')
        config.set_cached('stale')
        self.assertEqual(config.refresh_from_server(self._transport({'status': 'ok'})), 'from-setting')



class TTLCacheTests(unittest.TestCase):
    def setUp(self) -> None:
        self.now = 1000.0
        self.cache = TTLCache(60, clock=lambda: self.now)

    def test_entries_expire_after_ttl(self) -> None:
        self.cache.set('k', {'v': 1})
        self.now += 59
        self.assertEqual(self.cache.get('k'), {'v': 1})
        self.now += 1
        self.assertIsNone(self.cache.get('k'))
        self.assertEqual(len(self.cache), 0)

    def test_per_entry_ttl_override(self) -> None:
        self.cache.set('short', 1, ttl_seconds=5)
        self.cache.set('long', 2)
        self.now += 10
        self.assertIsNone(self.cache.get('short'))
        self.assertEqual(self.cache.get('long'), 2)

    def test_delete_prefix_only_touches_matching_keys(self) -> None:
        self.cache.set('reconciliation:toko-a:2026-10-18', 1)
        self.cache.set('reconciliation:toko-a:2026-10-19', 2)
        self.cache.set('reconciliation:toko-b:2026-10-19', 3)
        self.assertEqual(self.cache.delete_prefix('reconciliation:toko-a:'), 2)
        self.assertEqual(self.cache.get('reconciliation:toko-b:2026-10-19'), 3)

    def test_delete_and_clear(self) -> None:
        self.cache.set('a', 1)
        self.cache.set('b', 2)
        self.cache.delete('a')
        self.cache.delete('missing')
        self.assertIsNone(self.cache.get('a'))
        self.cache.clear()
        self.assertEqual(len(self.cache), 0)


if __name__ == '__main__':
    unittest.main()
