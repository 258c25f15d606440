from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from pos_portal.cache import TTLCache
from pos_portal.config import settings
from pos_portal.db import get_db
from pos_portal.dependencies import get_cache
from pos_portal.services.reconciliation_service import reconcile, report_cache_key
from pos_portal.store_config import resolve_request_store_id
from pos_portal.timeutils import store_today

logger = logging.getLogger(__name__)

router = APIRouter(tags=['reconciliation'])


def _parse_day(raw: str | None) -> date:
    if not raw:
        return store_today()
    try:
        return date.fromisoformat(raw.strip())
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='date must be YYYY-MM-DD') from exc


@router.get('/reconciliation')
def reconciliation_report(
    request: Request,
    store_id: str | None = Query(default=None, alias='storeId'),
    day: str | None = Query(default=None, alias='date'),
    summary: str | None = None,
    db: Session = Depends(get_db),
    cache: TTLCache = Depends(get_cache),
):
    resolved_store_id = (store_id or '').strip() or resolve_request_store_id(request)
    report_day = _parse_day(day)
    summary_only = (summary or '').strip().lower() == 'true'

    key = report_cache_key(resolved_store_id, report_day)
    if summary_only:
        cached = cache.get(key)
        if cached is not None:
            return cached

    try:
        report = reconcile(
            db,
            store_id=resolved_store_id,
            day=report_day,
            summary_only=summary_only,
            transaction_cap=settings.reconciliation_transaction_cap,
        )
    except Exception as exc:
        logger.exception('Reconciliation failed for store %s on %s', resolved_store_id, report_day)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail='Failed to fetch reconciliation data'
        ) from exc

    if summary_only:
        cache.set(key, report)
    return report
