from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from pos_portal.cache import TTLCache
from pos_portal.db import get_db
from pos_portal.dependencies import get_cache, parse_cashier_id, read_json_body
from pos_portal.services.reconciliation_service import invalidate_cached_reports
from pos_portal.services.sync_service import sync_transactions
from pos_portal.store_config import resolve_request_store_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=['sync'])


@router.post('/sync')
async def sync_offline_transactions(
    request: Request,
    db: Session = Depends(get_db),
    cache: TTLCache = Depends(get_cache),
):
    body = await read_json_body(request)
    if not isinstance(body, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Request body must be a JSON object')
    transactions = body.get('transactions')
    if not isinstance(transactions, list):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid transactions data')
    store_id = str(body.get('storeId') or '').strip() or resolve_request_store_id(request)
    cashier_id = parse_cashier_id(body.get('cashierId'))

    try:
        result = sync_transactions(db, transactions=transactions, store_id=store_id, cashier_id=cashier_id)
    except Exception as exc:
        logger.exception('Unexpected failure in sync endpoint for store %s', store_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail='Failed to sync transactions') from exc

    if result.synced:
        invalidate_cached_reports(cache, store_id)
    return result.as_response()
