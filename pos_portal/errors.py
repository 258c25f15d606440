from __future__ import annotations


class PosError(Exception):
    """Base class for errors surfaced by the POS core."""


class ValidationError(PosError):
    """Malformed input. Never retried; the transaction is neither queued nor committed."""


class NetworkError(PosError):
    """The request could not complete. Queued transactions stay queued."""


class ConflictError(PosError):
    """A unique value (invoice number, SKU) already exists."""


class NotFoundError(PosError):
    """A referenced product or transaction does not exist."""


class StorageUnavailable(PosError):
    """Durable local storage is missing or cannot be written."""


class SyncInProgress(PosError):
    """Another sync pass is already draining the queue."""
