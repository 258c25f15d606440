from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from pos_portal.cache import TTLCache
from pos_portal.db import get_db
from pos_portal.dependencies import get_cache, parse_cashier_id, read_json_body
from pos_portal.errors import ConflictError, NotFoundError, ValidationError
from pos_portal.schemas import TransactionIn, parse_payload
from pos_portal.services.reconciliation_service import invalidate_cached_reports
from pos_portal.services.transaction_service import (
    commit_transaction,
    delete_transaction,
    get_transaction,
    serialize_transaction,
)
from pos_portal.store_config import resolve_request_store_id

router = APIRouter(prefix='/transactions', tags=['transactions'])


@router.post('', status_code=status.HTTP_201_CREATED)
async def create_transaction(
    request: Request,
    db: Session = Depends(get_db),
    cache: TTLCache = Depends(get_cache),
):
    body = await read_json_body(request)
    if not isinstance(body, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Request body must be a JSON object')
    store_id = str(body.get('storeId') or '').strip() or resolve_request_store_id(request)
    cashier_id = parse_cashier_id(body.get('cashierId'))

    try:
        payload = parse_payload(TransactionIn, body)
        result = commit_transaction(db, store_id=store_id, cashier_id=cashier_id, payload=payload, is_synced=False)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    invalidate_cached_reports(cache, store_id)
    response = serialize_transaction(result.transaction, result.items)
    response['oversoldProductIds'] = result.oversold_product_ids
    return response


@router.get('/{transaction_id}')
def read_transaction(transaction_id: int, db: Session = Depends(get_db)):
    try:
        transaction, items = get_transaction(db, transaction_id=transaction_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return serialize_transaction(transaction, items)


@router.delete('/{transaction_id}')
def remove_transaction(
    transaction_id: int,
    actor_user_id: int | None = None,
    db: Session = Depends(get_db),
    cache: TTLCache = Depends(get_cache),
):
    try:
        transaction = delete_transaction(db, transaction_id=transaction_id, actor_user_id=actor_user_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    db.commit()
    invalidate_cached_reports(cache, transaction.store_id)
    return {'success': True, 'message': 'Transaction deleted and stock restored'}
