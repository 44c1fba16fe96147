from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jobflow.api.routes import router as api_router
from jobflow.config import Settings, get_settings
from jobflow.core.mailer import EmailTransport, SendGridTransport
from jobflow.core.vault import CredentialVault
from jobflow.db.init import init_database
from jobflow.errors import InvalidStateError, NotFoundError, ValidationFailure
from jobflow.logging_config import configure_logging

logger = logging.getLogger(__name__)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse({"detail": str(exc)}, status_code=404)

    @app.exception_handler(InvalidStateError)
    async def _invalid_state(_request: Request, exc: InvalidStateError) -> JSONResponse:
        return JSONResponse({"detail": str(exc)}, status_code=400)

    @app.exception_handler(ValidationFailure)
    async def _validation(_request: Request, exc: ValidationFailure) -> JSONResponse:
        return JSONResponse({"detail": str(exc), "errors": exc.errors}, status_code=422)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse({"detail": "Internal server error"}, status_code=500)


def create_app(
    settings: Settings | None = None,
    *,
    vault: CredentialVault | None = None,
    transport: EmailTransport | None = None,
) -> FastAPI:
    configure_logging()
    settings = settings or get_settings()

    app = FastAPI(title=settings.app_name)
    app.state.vault = vault or CredentialVault.from_settings(settings)
    app.state.transport = transport or SendGridTransport.from_settings(settings)
    if not app.state.transport.is_configured:
        logger.warning("SENDGRID_API_KEY not set; campaign sends will be recorded as failed")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def _startup() -> None:
        init_database()

    @app.get("/health")
    def health() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    _register_error_handlers(app)
    app.include_router(api_router)
    return app
