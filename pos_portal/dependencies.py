from fastapi import HTTPException, Request, status

from pos_portal.cache import TTLCache


def get_cache(request: Request) -> TTLCache:
    return request.app.state.cache


async def read_json_body(request: Request) -> object | None:
    try:
        return await request.json()
    except ValueError:
        return None


def parse_cashier_id(value) -> int:
    if isinstance(value, bool):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid cashierId')
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid cashierId') from exc
