# house_of_charity/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from house_of_charity.core.config import Settings, get_settings
from house_of_charity.core.exceptions import BackendError, CharityError
from house_of_charity.core.logging_config import setup_logging
from house_of_charity.deps import build_repository
from house_of_charity.middleware.audit import RequestLogMiddleware
from house_of_charity.repos.base import Repository
from house_of_charity.routers import auth, donations, notifications, requirements, system, users
from house_of_charity.services.notifications import Notifier

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    repo: Repository = app.state.repo
    await repo.startup()
    logger.info("House of Charity API started (%s mode)", repo.mode)
    yield
    await repo.shutdown()


def _first_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    err = errors[0]
    loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path", "header")]
    msg = err.get("msg", "Invalid value")
    return f"{'.'.join(loc)}: {msg}" if loc else msg


def _server_error(settings: Settings, detail: str) -> JSONResponse:
    body = {"error": "Internal server error"}
    if settings.is_development:
        body["message"] = detail
    return JSONResponse(status_code=500, content=body)


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(CharityError)
    async def charity_error_handler(request: Request, exc: CharityError):
        if isinstance(exc, BackendError):
            logger.error(
                "Backend failure on %s %s: %s", request.method, request.url.path, exc.message, exc_info=exc
            )
            return _server_error(settings, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": _first_error(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={"error": "Route not found"})
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _server_error(settings, str(exc))


def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[Repository] = None,
    notifier: Optional[Notifier] = None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_json)

    repo = repository or build_repository(settings)

    app = FastAPI(lifespan=lifespan, title="House of Charity API")
    app.state.settings = settings
    app.state.repo = repo
    app.state.notifier = notifier or Notifier(repo, settings)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLogMiddleware)

    register_exception_handlers(app, settings)

    # ---------------- Include routers ----------------
    app.include_router(system.router)           # /health, /api/health, /api/db-status
    app.include_router(auth.router)             # /api/auth
    app.include_router(donations.router)        # /api/donations
    app.include_router(requirements.router)     # /api/requirements
    app.include_router(notifications.router)    # /api/notifications
    app.include_router(users.router)            # /api/users
    return app


app = create_app()
