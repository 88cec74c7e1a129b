from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from membership.config import Config, load_config
from membership.db import connect, init_db
from membership.errors import (
    AlreadyAuthenticated,
    AuthError,
    StorageUnavailable,
    Unauthorized,
    UserNotFound,
)
from membership.models import Session

from membership.auth import RedirectRequired, bootstrap_admin_if_needed, get_session, require_admin, require_login
from membership.auth import service as auth_service
from membership.auth import sessions as session_store
from membership.auth.deps import get_config, session_id_from_request
from membership.auth.security import create_session_cookie


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parents[1] / "templates"))

# Error codes that may be passed between pages in a redirect URL.
_PAGE_ERRORS = {
    "admin_required": Unauthorized.default_message,
}

router = APIRouter()


def _render(
    request: Request,
    template: str,
    context: Dict[str, Any],
    *,
    status_code: int = 200,
) -> Response:
    return templates.TemplateResponse(request, template, context, status_code=status_code)


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=302)


async def _form_fields(request: Request) -> Dict[str, Any]:
    """Submitted form fields as sent: absent keys stay absent, blanks stay ""."""
    form = await request.form()
    return dict(form.items())


# -----------------------------
# Session cookie
# -----------------------------


def _cookie_secure(cfg: Config) -> bool:
    """Return whether the session cookie should be marked Secure."""
    samesite = str(getattr(cfg, "SESSION_COOKIE_SAMESITE", "lax") or "lax").lower()
    secure = bool(getattr(cfg, "SESSION_COOKIE_SECURE", False))
    # Browsers require Secure when SameSite=None
    if samesite == "none":
        return True
    return secure


def _set_session_cookie(response: Response, *, session: Session, cfg: Config) -> None:
    # Fixed: cookie and server row expire together, independent of activity.
    # Rolling: browser-session cookie, the server row alone decides expiry.
    max_age: Optional[int] = None if cfg.SESSION_ROLLING else int(cfg.SESSION_TTL_SECONDS)
    token = create_session_cookie(
        secret=cfg.SESSION_SECRET,
        session_id=session.session_id,
        expires_seconds=max_age,
    )
    response.set_cookie(
        key=cfg.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite=str(cfg.SESSION_COOKIE_SAMESITE or "lax").lower(),
        secure=_cookie_secure(cfg),
        max_age=max_age,
        path=cfg.SESSION_COOKIE_PATH,
        domain=cfg.SESSION_COOKIE_DOMAIN,
    )


def _clear_session_cookie(response: Response, cfg: Config) -> None:
    response.delete_cookie(
        key=cfg.SESSION_COOKIE_NAME,
        path=cfg.SESSION_COOKIE_PATH,
        domain=cfg.SESSION_COOKIE_DOMAIN,
    )


# -----------------------------
# Health
# -----------------------------


@router.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok"}


# -----------------------------
# Pages
# -----------------------------


@router.get("/")
def home(request: Request, session: Optional[Session] = Depends(get_session)) -> Response:
    authenticated = bool(session and session.authenticated)
    return _render(
        request,
        "index.html",
        {"session": session, "title": "Members" if authenticated else "Home"},
    )


@router.get("/login")
def login_page(request: Request) -> Response:
    return _render(request, "login.html", {"error": None, "title": "Login"})


@router.post("/login")
def login_submit(
    request: Request,
    form: Dict[str, Any] = Depends(_form_fields),
    session: Optional[Session] = Depends(get_session),
    cfg: Config = Depends(get_config),
) -> Response:
    try:
        with connect(cfg.DB_DSN) as conn:
            grant = auth_service.login(
                conn,
                username=form.get("username"),
                password=form.get("password"),
                current=session,
            )
            new_session = session_store.create(conn, grant, cfg.SESSION_TTL_SECONDS)
    except AlreadyAuthenticated:
        _debug("User already logged in")
        return _redirect("/members")
    except AuthError as e:
        return _render(request, "login.html", {"error": e.message, "title": "Login"})

    response = _redirect("/members")
    _set_session_cookie(response, session=new_session, cfg=cfg)
    return response


@router.get("/logout")
def logout(request: Request, cfg: Config = Depends(get_config)) -> Response:
    sid = session_id_from_request(request, cfg)
    with connect(cfg.DB_DSN) as conn:
        auth_service.logout(conn, sid)
    response = _redirect("/")
    _clear_session_cookie(response, cfg)
    return response


@router.get("/signup")
def signup_page(request: Request) -> Response:
    return _render(request, "signup.html", {"title": "Signup"})


@router.post("/signup")
def signup_submit(
    request: Request,
    form: Dict[str, Any] = Depends(_form_fields),
    cfg: Config = Depends(get_config),
) -> Response:
    try:
        with connect(cfg.DB_DSN) as conn:
            auth_service.signup(
                conn,
                name=form.get("name"),
                username=form.get("username"),
                password=form.get("password"),
                rounds=cfg.PASSWORD_HASH_ROUNDS,
            )
    except AuthError as e:
        return _render(request, "signup_error.html", {"error": e.message, "title": "Signup Error"})
    return _redirect("/login")


@router.get("/members")
def members(
    request: Request,
    error: Optional[str] = None,
    session: Session = Depends(require_login),
    cfg: Config = Depends(get_config),
) -> Response:
    return _render(
        request,
        "members.html",
        {
            "name": session.name,
            "images": list(cfg.GALLERY_IMAGES),
            "error": _PAGE_ERRORS.get(error or ""),
            "title": "Members",
            "session": session,
        },
    )


# -----------------------------
# Admin
# -----------------------------


@router.get("/admin")
def admin(
    request: Request,
    session: Session = Depends(require_admin),
    cfg: Config = Depends(get_config),
) -> Response:
    with connect(cfg.DB_DSN) as conn:
        users = auth_service.list_public_users(conn, session)
    return _render(request, "admin.html", {"title": "Admin", "session": session, "users": users})


@router.get("/admin/promote/{username}")
def admin_promote(
    username: str,
    session: Session = Depends(require_admin),
    cfg: Config = Depends(get_config),
) -> Response:
    try:
        with connect(cfg.DB_DSN) as conn:
            auth_service.promote(conn, session, username)
    except UserNotFound:
        _debug(f"Promote target not found: {username}")
    return _redirect("/admin")


@router.get("/admin/demote/{username}")
def admin_demote(
    username: str,
    session: Session = Depends(require_admin),
    cfg: Config = Depends(get_config),
) -> Response:
    try:
        with connect(cfg.DB_DSN) as conn:
            auth_service.demote(conn, session, username)
    except UserNotFound:
        _debug(f"Demote target not found: {username}")
    return _redirect("/admin")


# -----------------------------
# App
# -----------------------------


def _on_startup(cfg: Config) -> None:
    # Ensure schema exists.
    init_db(cfg.DB_DSN)

    with connect(cfg.DB_DSN) as conn:
        session_store.purge_expired(conn)

    # Bootstrap first admin if needed (only when users table is empty)
    bootstrap_admin_if_needed(cfg)


def create_app(cfg: Optional[Config] = None) -> FastAPI:
    cfg = cfg or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await run_in_threadpool(_on_startup, cfg)
        yield

    app = FastAPI(title="Membership Site", version="0.1.0", lifespan=lifespan)
    # Make config available to auth deps.
    app.state.cfg = cfg
    app.include_router(router)

    @app.exception_handler(RedirectRequired)
    async def _redirect_required(request: Request, exc: RedirectRequired) -> Response:
        return _redirect(exc.location)

    @app.exception_handler(StorageUnavailable)
    async def _storage_unavailable(request: Request, exc: StorageUnavailable) -> Response:
        _debug(f"Storage unavailable for {request.method} {request.url.path}: {exc.__cause__!r}")
        return _render(request, "error.html", {"title": "Error", "error": exc.message}, status_code=500)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> Response:
        if exc.status_code == 404:
            return _render(request, "404.html", {"title": "404 Not Found"}, status_code=404)
        return await http_exception_handler(request, exc)

    return app


app = create_app()
