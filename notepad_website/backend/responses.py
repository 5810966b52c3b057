"""
Page and JSON response helpers.

Route handlers never build error responses themselves: they are wrapped
with ``json_endpoint`` or ``page_endpoint``, which turn failures into the
JSON error envelope or the generic error page.
"""

import functools
import logging
import os
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.templating import Jinja2Templates

from .domain import ApiError, AuthError, StoreError
from .i18n import get_i18n, strings_for

logger = logging.getLogger(__name__)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
TEMPLATES_DIR = os.path.join(BASE_DIR, "..", "website", "templates")

templates = Jinja2Templates(directory=TEMPLATES_DIR)

PAGES = {
    "Edit": "edit.html",
    "Share": "share.html",
    "NeedPasswd": "need_passwd.html",
    "NoteList": "note_list.html",
    "Error": "error.html",
    "Page404": "page404.html",
}

PAGE_STATUS = {"Page404": 404, "Error": 500}

def return_page(request: Request, page: str, **context: Any):
    """Render one of the named page templates in the request's language."""
    lang = context.pop("lang", None) or get_i18n(request)
    context.update(lang=lang, t=strings_for(lang))
    return templates.TemplateResponse(
        request,
        PAGES[page],
        context,
        status_code=PAGE_STATUS.get(page, 200),
    )

def return_json(code: int = 0, data: Any = None, message: Optional[str] = None,
                headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    """Build the ``{code, data?}`` / ``{code, message}`` envelope.

    Dict payloads are also spread at the top level of a success envelope.
    """
    if code != 0:
        return JSONResponse({"code": code, "message": message or ""}, headers=headers)
    body: Dict[str, Any] = {"code": 0}
    if data is not None:
        if isinstance(data, dict):
            body.update(data)
        body["data"] = data
    return JSONResponse(body, headers=headers)

def json_endpoint(code: int, message: str):
    """Convert any failure inside the handler into ``ApiError(code, message)``."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except ApiError:
                raise
            except (AuthError, StoreError, ValueError) as exc:
                logger.warning(f"[api] {func.__name__} failed: {exc}")
                raise ApiError(code, message) from exc
            except Exception as exc:
                logger.exception(f"[api] {func.__name__} crashed")
                raise ApiError(code, message) from exc
        return wrapper
    return decorator

def page_endpoint(func):
    """Render the generic error page when a page handler fails."""
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except Exception:
            logger.exception(f"[page] {func.__name__} crashed")
            request = kwargs.get("request") or next(a for a in args if isinstance(a, Request))
            return return_page(request, "Error", title="Error", message="Failed to load page")
    return wrapper

async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return return_json(exc.code, message=exc.message)
