# src/gitlab_profile_ui/main.py

import logging
import typing
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from fastapi import FastAPI, Request, status
from fastapi.responses import FileResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import Settings
from .csrf import generate_csrf, validate_csrf
from .exceptions import CSRFValidationError, GitLabAPIError
from .gitlab_client import GitLabClient
from .session_data import SessionData
from .sessions import InMemorySessionStore, SessionMiddleware, get_session

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = PACKAGE_DIR / "templates"
STATIC_DIR = PACKAGE_DIR / "static"
ERROR_PAGES_DIR = STATIC_DIR / "errors"

LOGIN_AGAIN_MESSAGE = "Login Again"
ACCESS_DENIED_MESSAGE = "Access denied by GitLab. Login Again"

templates = Jinja2Templates(directory=TEMPLATES_DIR)


def error_page(status_code: int) -> FileResponse:
    page = status_code if status_code in (403, 404) else 500
    return FileResponse(ERROR_PAGES_DIR / f"{page}.html", status_code=status_code, media_type="text/html")


def get_gitlab(request: Request) -> GitLabClient:
    return request.app.state.gitlab


def create_app(settings: Settings, transport: typing.Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    """
    Builds the application around an explicit Settings object.
    ``transport`` replaces the network layer of the outbound GitLab client.
    """

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        logger.info("--- GitLab Profile UI Starting Up ---")
        logger.info("GitLab instance: %s", settings.gitlab_url)
        logger.info("Redirect URI: %s", settings.redirect_uri)
        logger.info("Requested scope: %s", settings.SCOPE)
        async with httpx.AsyncClient(timeout=settings.GITLAB_TIMEOUT, transport=transport) as http_client:
            app.state.gitlab = GitLabClient(settings, http_client)
            yield
        logger.info("--- GitLab Profile UI Shut Down ---")

    app = FastAPI(
        title="GitLab Profile UI",
        description="Signs users in with GitLab OAuth and shows their profile and recent activity.",
        version=__version__,
        lifespan=_lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.state.session_store = InMemorySessionStore(max_age=settings.SESSION_MAX_AGE)

    # --- Session Management Setup ---
    app.add_middleware(
        SessionMiddleware,
        store=app.state.session_store,
        secret_key=settings.SESSION_SECRET,
        cookie_name=settings.SESSION_NAME,
        max_age=settings.SESSION_MAX_AGE,
        secure=settings.SESSION_COOKIE_SECURE,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        response = await call_next(request)
        logger.info("%s %s - %s", request.method, request.url.path, response.status_code)
        return response

    # --- Static Files ---
    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    # --- Error Handlers ---
    @app.exception_handler(CSRFValidationError)
    async def csrf_error_handler(request: Request, exc: CSRFValidationError):
        return error_page(status.HTTP_403_FORBIDDEN)

    @app.exception_handler(GitLabAPIError)
    async def gitlab_error_handler(request: Request, exc: GitLabAPIError):
        logger.error("GitLab call failed during %s: %s", request.url.path, exc)
        return error_page(status.HTTP_500_INTERNAL_SERVER_ERROR)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return error_page(exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error during %s", request.url.path)
        return error_page(status.HTTP_500_INTERNAL_SERVER_ERROR)

    # --- Routes ---
    @app.get("/")
    async def index(request: Request):
        session = get_session(request)
        state = generate_csrf(session)
        url = get_gitlab(request).authorize_url(state)
        message = session.message
        session.message = None
        return templates.TemplateResponse(request, "index.html", {"url": url, "message": message})

    @app.get("/callback")
    async def callback(
        request: Request,
        code: typing.Optional[str] = None,
        state: typing.Optional[str] = None,
        error: typing.Optional[str] = None,
        error_description: typing.Optional[str] = None,
    ):
        session = get_session(request)
        gitlab = get_gitlab(request)

        if error:
            validate_csrf(state, session)
            logger.info("GitLab returned an authorization error: %s (%s)", error, error_description)
            session.message = ACCESS_DENIED_MESSAGE
            return RedirectResponse(url="/", status_code=status.HTTP_303_SEE_OTHER)
        if not code:
            raise GitLabAPIError("Callback reached without an authorization code.")

        access_token = await gitlab.exchange_code(code)
        validate_csrf(state, session)
        session.access_token = access_token

        if not session.access_token:
            session.message = LOGIN_AGAIN_MESSAGE
            return RedirectResponse(url="/", status_code=status.HTTP_303_SEE_OTHER)

        user = await gitlab.get_user(session.access_token)
        activities = await gitlab.get_events(session.access_token)
        logger.info("Rendering profile page for user id %s.", user.id)
        return templates.TemplateResponse(
            request,
            "userpage.html",
            {"userInfo": user, "activities": activities},
        )

    @app.get("/logout")
    async def logout(request: Request):
        # Local sign-out only; the token stays valid at GitLab until it expires.
        request.state.session = SessionData()
        return RedirectResponse(url="/", status_code=status.HTTP_303_SEE_OTHER)

    return app
