from __future__ import annotations

import json
from typing import Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from pos_portal.errors import ConflictError, NetworkError, NotFoundError, PosError, ValidationError


class SyncTransport(Protocol):
    def post_sync(self, payload: dict) -> dict: ...

    def health(self) -> dict: ...

    def ping(self) -> bool: ...


def _error_detail(exc: HTTPError) -> str:
    body = exc.read().decode('utf-8', errors='ignore') if exc.fp else ''
    try:
        parsed = json.loads(body)
    except ValueError:
        return body or exc.reason
    if isinstance(parsed, dict):
        return str(parsed.get('detail') or parsed.get('error') or body)
    return body


def _status_error(exc: HTTPError) -> PosError:
    detail = _error_detail(exc)
    if exc.code in (400, 422):
        return ValidationError(detail)
    if exc.code == 404:
        return NotFoundError(detail)
    if exc.code == 409:
        return ConflictError(detail)
    return PosError(f'Server error {exc.code}: {detail}')


class HttpSyncTransport:
    def __init__(self, base_url: str, *, timeout_seconds: float = 30) -> None:
        self.base_url = base_url.rstrip('/')
        self.timeout_seconds = timeout_seconds

    def _request(self, method: str, path: str, body: dict | None = None) -> dict:
        data = json.dumps(body).encode('utf-8') if body is not None else None
        req = Request(
            url=f'{self.base_url}{path}',
            data=data,
            headers={'Content-Type': 'application/json', 'Accept': 'application/json'},
            method=method,
        )
        try:
            with urlopen(req, timeout=self.timeout_seconds) as response:
                parsed = json.loads(response.read().decode('utf-8'))
        except HTTPError as exc:
            raise _status_error(exc) from exc
        except URLError as exc:
            raise NetworkError(f'Network error: {exc.reason}') from exc
        except (TimeoutError, ConnectionError) as exc:
            raise NetworkError(f'Network error: {exc}') from exc
        except ValueError as exc:
            raise PosError('Server returned a malformed response') from exc

        if not isinstance(parsed, dict):
            raise PosError('Server returned a malformed response')
        return parsed

    def post_sync(self, payload: dict) -> dict:
        return self._request('POST', '/sync', payload)

    def health(self) -> dict:
        return self._request('GET', '/healthz')

    def ping(self) -> bool:
        try:
            self.health()
        except PosError:
            return False
        return True
