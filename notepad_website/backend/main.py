import logging
from datetime import datetime, timedelta, UTC
from typing import Optional
from urllib.parse import quote

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import RedirectResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings
from .domain import ApiError, AuthError, Note
from .models import NoteEntry, NotesListData, PasswordPayload, SettingPayload
from .responses import api_error_handler, json_endpoint, page_endpoint, return_json, return_page
from .services import AuthService, NoteRepository, NotesApp, ShareRegistry
from .store import KVNamespace, open_namespaces
from .utils import gen_random_str, share_token

logger = logging.getLogger(__name__)

AUTH_COOKIE = "auth"
COOKIE_CLEAR_DAYS = 100

def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

def cookie_path(request: Request, path: str) -> str:
    """The note's path segment exactly as the client sent it.

    Browsers match cookie paths against the raw request path, so the
    segment is not re-encoded from the decoded ``path``.
    """
    raw_path = request.scope.get("raw_path")
    if raw_path:
        segment = raw_path.decode("latin-1").split("?", 1)[0].lstrip("/").split("/", 1)[0]
        if segment:
            return f"/{segment}"
    return "/" + quote(path, safe="!$&'()*+,;=:@~")

def set_auth_cookie(response: Response, cookie_scope: str, token: str, days: int) -> None:
    response.set_cookie(
        AUTH_COOKIE,
        token,
        path=cookie_scope,
        expires=datetime.now(UTC) + timedelta(days=days),
        httponly=True,
    )

def clear_auth_cookie(response: Response, cookie_scope: str) -> None:
    response.set_cookie(
        AUTH_COOKIE,
        "",
        path=cookie_scope,
        expires=datetime.now(UTC) - timedelta(days=COOKIE_CLEAR_DAYS),
        httponly=True,
    )

def public_ext(note: Note) -> dict:
    """Metadata safe to hand to a page template (no password hash)."""
    ext = note.metadata.to_dict()
    ext.pop("pw", None)
    return ext

async def read_json(request: Request, model):
    """Parse a JSON request body into ``model``; other content types are rejected."""
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type != "application/json":
        raise ValueError(f"Expected application/json body, got {content_type or 'nothing'}")
    return model.model_validate(await request.json())

def create_app(settings: Optional[Settings] = None,
               notes_kv: Optional[KVNamespace] = None,
               share_kv: Optional[KVNamespace] = None) -> FastAPI:
    """Build the application with its stores and signing secret injected."""
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    if notes_kv is None or share_kv is None:
        default_notes, default_share = open_namespaces(settings)
        notes_kv = notes_kv or default_notes
        share_kv = share_kv or default_share

    notes = NotesApp(
        NoteRepository(notes_kv),
        ShareRegistry(share_kv),
        AuthService(settings.secret, settings.salt),
    )

    app = FastAPI(title="Notepad", description="Minimal hosted notes and pastebin", version="1.0.0")
    app.state.settings = settings
    app.state.notes = notes
    app.add_exception_handler(ApiError, api_error_handler)

    async def not_found_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (404, 405):
            return return_page(request, "Page404", title="404")
        return await http_exception_handler(request, exc)

    app.add_exception_handler(StarletteHTTPException, not_found_handler)

    def new_note_redirect() -> RedirectResponse:
        return RedirectResponse(f"/{gen_random_str(settings.random_id_length)}", status_code=302)

    async def directory_page(request: Request):
        note_list = [item.to_dict() for item in await notes.list_notes()]
        return return_page(
            request,
            "NoteList",
            title="Notes Directory",
            notes=note_list,
            noteCount=len(note_list),
        )

    @app.get("/")
    async def index(request: Request):
        if settings.root_mode == "redirect":
            return new_note_redirect()
        try:
            return await directory_page(request)
        except Exception:
            logger.exception("[list] directory failed, redirecting to a new note")
            return new_note_redirect()

    @app.get("/directory")
    @page_endpoint
    async def directory(request: Request):
        return await directory_page(request)

    @app.get("/new")
    async def new_note():
        return new_note_redirect()

    @app.get("/api/notes")
    @json_endpoint(10005, "Get note list failed!")
    async def api_notes():
        items = await notes.list_notes()
        data = NotesListData(notes=[NoteEntry(**item.to_dict()) for item in items], count=len(items))
        return return_json(0, data.model_dump(by_alias=True))

    @app.get("/share/{token}")
    @page_endpoint
    async def shared_note(request: Request, token: str):
        note = await notes.open_shared(token)
        if note is None:
            return return_page(request, "Page404", title="404")
        return return_page(
            request,
            "Share",
            title=note.path,
            content=note.content,
            ext=public_ext(note),
        )

    @app.get("/{path}")
    @page_endpoint
    async def edit_page(request: Request, path: str):
        note, authorized = await notes.open_note(path, request.cookies.get(AUTH_COOKIE))
        if not authorized:
            return return_page(request, "NeedPasswd", title=path, path=path)
        return return_page(
            request,
            "Edit",
            title=path,
            path=path,
            content=note.content,
            ext=public_ext(note),
            has_password=note.metadata.has_password,
            share_token=share_token(path) if note.metadata.share else None,
        )

    @app.post("/{path}/auth")
    @json_endpoint(10002, "Password auth failed!")
    async def auth(request: Request, path: str):
        payload = await read_json(request, PasswordPayload)
        token = await notes.authenticate(path, payload.passwd)
        response = return_json(0, {"refresh": True})
        set_auth_cookie(response, cookie_path(request, path), token, settings.auth_days)
        return response

    @app.post("/{path}/pw")
    @json_endpoint(10003, "Password setting failed!")
    async def set_password(request: Request, path: str):
        payload = await read_json(request, PasswordPayload)
        await notes.set_password(path, payload.passwd, request.cookies.get(AUTH_COOKIE))
        response = return_json(0)
        clear_auth_cookie(response, cookie_path(request, path))
        return response

    @app.post("/{path}/setting")
    @json_endpoint(10004, "Update Setting failed!")
    async def update_setting(request: Request, path: str):
        payload = await read_json(request, SettingPayload)
        shared = await notes.update_setting(
            path,
            request.cookies.get(AUTH_COOKIE),
            mode=payload.mode,
            share=payload.share,
        )
        return return_json(0, shared)

    @app.post("/{path}")
    @json_endpoint(10001, "KV insert fail!")
    async def save_note(request: Request, path: str):
        form = await request.form()
        text = form.get("t")
        try:
            await notes.save_content(path, text if isinstance(text, str) else None,
                                     request.cookies.get(AUTH_COOKIE))
        except AuthError as exc:
            raise ApiError(
                10002,
                "Password auth failed! Try refreshing this page if you had just set a password.",
            ) from exc
        return return_json(0)

    logger.info(f"Notepad starting with {settings.store} store (root mode: {settings.root_mode})")
    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
