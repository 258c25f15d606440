import logging

from fastapi import FastAPI, Request

from pos_portal.cache import TTLCache
from pos_portal.config import settings
from pos_portal.routers import reconciliation, sync, transactions
from pos_portal.store_config import resolve_request_store_id

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = FastAPI(title='POS Portal')
app.state.cache = TTLCache(settings.cache_ttl_seconds)

app.include_router(sync.router)
app.include_router(transactions.router)
app.include_router(reconciliation.router)


@app.get('/healthz')
def healthz(request: Request) -> dict:
    return {'status': 'ok', 'storeId': resolve_request_store_id(request)}
