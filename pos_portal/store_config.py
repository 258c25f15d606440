from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from fastapi import Request

from pos_portal.client.transport import SyncTransport
from pos_portal.config import settings
from pos_portal.errors import PosError

logger = logging.getLogger(__name__)

DEFAULT_STORE_ID = 'demo-store'
STORE_ID_HEADER = 'x-store-id'
STORE_ID_COOKIE = 'current-store-id'

# First present value wins.
SERVER_STORE_ID_PRIORITY = ('header', 'subdomain', 'cookie', 'setting')
CLIENT_STORE_ID_PRIORITY = ('override', 'cached', 'setting')

StoreIdSource = tuple[str, Callable[[], str | None]]


def resolve_store_id(sources: Iterable[StoreIdSource], default: str = DEFAULT_STORE_ID) -> str:
    for _name, source in sources:
        value = (source() or '').strip()
        if value:
            return value
    return default


def subdomain_from_host(host: str | None) -> str | None:
    if not host or host.startswith('www.'):
        return None
    hostname = host.split(':', 1)[0]
    parts = hostname.split('.')
    if len(parts) < 2 or parts[0] == 'localhost':
        return None
    return parts[0]


def request_store_id_sources(request: Request) -> list[StoreIdSource]:
    getters: dict[str, Callable[[], str | None]] = {
        'header': lambda: request.headers.get(STORE_ID_HEADER),
        'subdomain': lambda: subdomain_from_host(request.headers.get('host')),
        'cookie': lambda: request.cookies.get(STORE_ID_COOKIE),
        'setting': lambda: settings.store_id,
    }
    return [(name, getters[name]) for name in SERVER_STORE_ID_PRIORITY]


def resolve_request_store_id(request: Request) -> str:
    return resolve_store_id(request_store_id_sources(request))


class ClientStoreConfig:
    """Store id as seen by a till: explicit override, then the id learned from the server."""

    def __init__(self, *, override: str | None = None, configured: str | None = None) -> None:
        self.override = override
        self.configured = configured
        self._cached: str | None = None

    def set_cached(self, store_id: str) -> None:
        self._cached = store_id

    def clear_cached(self) -> None:
        self._cached = None

    def sources(self) -> list[StoreIdSource]:
        getters: dict[str, Callable[[], str | None]] = {
            'override': lambda: self.override,
            'cached': lambda: self._cached,
            'setting': lambda: self.configured,
        }
        return [(name, getters[name]) for name in CLIENT_STORE_ID_PRIORITY]

    def store_id(self) -> str:
        return resolve_store_id(self.sources())

    def refresh_from_server(self, transport: SyncTransport) -> str:
        """Cache the store id the server reports and return the effective id.

        An unreachable server leaves the cached value alone; a reply without a
        store id drops it.
        """
        try:
            reply = transport.health()
        except PosError as exc:
            logger.warning('Could not fetch the store id from the server: %s', exc)
            return self.store_id()
        server_store_id = str(reply.get('storeId') or '').strip()
        if server_store_id:
            self.set_cached(server_store_id)
        else:
            self.clear_cached()
        return self.store_id()
