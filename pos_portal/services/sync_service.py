from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pos_portal.errors import PosError
from pos_portal.schemas import QueuedTransactionIn, parse_payload
from pos_portal.services.transaction_service import commit_transaction

logger = logging.getLogger(__name__)


@dataclass
class SyncBatchResult:
    synced: list[dict] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed

    def as_response(self) -> dict:
        return {
            'success': self.success,
            'synced': len(self.synced),
            'failed': len(self.failed),
            'details': {'synced': self.synced, 'failed': self.failed},
        }


def _local_id_of(raw: Any) -> str | None:
    if not isinstance(raw, dict):
        return None
    value = raw.get('localId', raw.get('id'))
    return None if value is None else str(value)


def sync_transactions(
    db: Session,
    *,
    transactions: list[Any],
    store_id: str,
    cashier_id: int,
) -> SyncBatchResult:
    """Commit each offline sale in arrival order, independently of the others.

    A sale that fails validation, references a missing product or loses every
    invoice retry is reported in ``failed`` and the batch moves on.
    """
    result = SyncBatchResult()
    for raw in transactions:
        local_id = _local_id_of(raw)
        try:
            payload = parse_payload(QueuedTransactionIn, raw)
            committed = commit_transaction(
                db,
                store_id=store_id,
                cashier_id=cashier_id,
                payload=payload,
                is_synced=True,
            )
        except PosError as exc:
            logger.warning('Sync of offline transaction %s failed: %s', local_id, exc)
            result.failed.append({'localId': local_id, 'error': str(exc), 'errorType': type(exc).__name__})
            continue
        except SQLAlchemyError as exc:
            logger.exception('Database error while syncing offline transaction %s', local_id)
            result.failed.append({'localId': local_id, 'error': 'Failed to sync', 'errorType': type(exc).__name__})
            continue

        result.synced.append(
            {
                'localId': local_id,
                'serverId': committed.transaction.id,
                'invoiceNumber': committed.transaction.invoice_number,
                'oversoldProductIds': committed.oversold_product_ids,
            }
        )

    logger.info(
        'Sync batch for store %s: %d synced, %d failed', store_id, len(result.synced), len(result.failed)
    )
    return result
