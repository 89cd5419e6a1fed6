from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .ad import DirectoryConnector
from .deps import BASIC_REALM
from .env_settings import DirectorySettings, get_env
from .errors import (
    BindError,
    ConflictError,
    DirectoryError,
    NotFoundError,
    ProtocolError,
    ValidationError,
)
from .log_config import setup_logging
from .routers import groups_router, users_router

log = logging.getLogger(__name__)


def error_body(status_code: int, message: str, detail: str | None = None) -> dict:
    """Unified error shape: {"status": int, "message": str, "detail": str|null}."""
    return {"status": int(status_code), "message": str(message or ""), "detail": detail}


def status_for(exc: DirectoryError) -> tuple[int, str]:
    if isinstance(exc, ValidationError):
        return status.HTTP_400_BAD_REQUEST, "Invalid request"
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND, "Object not found in directory"
    if isinstance(exc, BindError):
        if exc.unreachable:
            return status.HTTP_502_BAD_GATEWAY, "Unable to reach Active Directory server"
        return status.HTTP_401_UNAUTHORIZED, "Invalid credentials"
    if isinstance(exc, ConflictError):
        if exc.insufficient_rights:
            return status.HTTP_403_FORBIDDEN, "Insufficient access rights"
        return status.HTTP_409_CONFLICT, "Directory rejected the change"
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "LDAP operation failed"


async def directory_error_handler(request: Request, exc: DirectoryError) -> JSONResponse:
    code, message = status_for(exc)
    if isinstance(exc, (ProtocolError, ConflictError)) or (isinstance(exc, BindError) and exc.unreachable):
        log.error(
            "%s %s: %s (code=%s) %s",
            request.method, request.url.path, exc.message, exc.code, exc.detail,
        )
    else:
        log.info("%s %s: %s", request.method, request.url.path, exc)

    headers = None
    if code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": f'Basic realm="{BASIC_REALM}"'}

    # ValidationError/NotFoundError messages are built from caller input and
    # are safe to echo; protocol diagnostics (exc.detail) stay in the log.
    detail = exc.message if isinstance(exc, (ValidationError, NotFoundError)) else None
    return JSONResponse(error_body(code, message, detail), status_code=code, headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errs = exc.errors()
    detail = "; ".join(
        f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg', '')}" for e in errs
    ) or None
    return JSONResponse(
        error_body(status.HTTP_400_BAD_REQUEST, "Invalid request", detail),
        status_code=status.HTTP_400_BAD_REQUEST,
    )


def create_app(settings: DirectorySettings | None = None) -> FastAPI:
    settings = settings or get_env()
    setup_logging(
        level=settings.log_level,
        log_dir=settings.log_dir,
        retention_days=settings.log_retention_days,
    )

    app = FastAPI(title="LDAP-to-REST")
    app.state.settings = settings
    app.state.connector = DirectoryConnector(settings)

    app.add_exception_handler(DirectoryError, directory_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    origins = settings.cors_origins
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_headers=["*"],
            allow_methods=["*"],
        )

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    app.include_router(users_router)
    app.include_router(groups_router)

    log.info(
        "LDAP-to-REST started: %s:%s base=%s tls=%s",
        settings.host,
        settings.resolved_port,
        settings.base_dn,
        "ldaps" if settings.use_ssl else ("starttls" if settings.starttls else "none"),
    )
    return app


def run() -> None:
    """Console entry point: ``ldap-rest`` (env: HOST, PORT for the listener)."""
    import os

    import uvicorn

    uvicorn.run(
        "ldap_rest.main:create_app",
        factory=True,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8080")),
        log_config=None,
    )
