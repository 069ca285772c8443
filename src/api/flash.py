"""One-request flash data kept in the signed session cookie."""

from starlette.requests import Request

FLASH_KEY = "_flash"


def flash(request: Request, **values) -> None:
    data = dict(request.session.get(FLASH_KEY) or {})
    data.update(values)
    request.session[FLASH_KEY] = data


def pop_flash(request: Request) -> dict:
    return request.session.pop(FLASH_KEY, None) or {}
