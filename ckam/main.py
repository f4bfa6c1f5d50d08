"""FastAPI application entrypoint. No business logic; only wiring, middleware and error mapping."""

from dotenv import load_dotenv

load_dotenv()

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ckam import __version__
from ckam.api import legacy_router
from ckam.api import router as api_router
from ckam.core.config import Settings, settings as default_settings
from ckam.core.errors import AccountStoreError
from ckam.services.account_store import AccountStore

logger = logging.getLogger(__name__)


def _error_body(message: str, error: str | None = None) -> dict:
    body: dict = {"success": False, "message": message}
    if error:
        body["error"] = error
    return body


def create_app(
    settings: Settings | None = None,
    store: AccountStore | None = None,
) -> FastAPI:
    """
    Build the application. The account store is loaded at startup from
    settings.ACCOUNTS_FILE unless one is passed in (tests do).
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "store", None) is None:
            app.state.store = AccountStore.from_settings(settings)
        logger.info(
            "Account service ready: %s users (environment=%s)",
            app.state.store.count(),
            settings.APP_ENV,
            extra={
                "environment": settings.APP_ENV,
                "users": app.state.store.count(),
                "accounts_file": str(app.state.store.path),
            },
        )
        yield

    app = FastAPI(
        title="CKAM Messenger API",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.APP_ENV == "dev" else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AccountStoreError)
    async def account_error_handler(request: Request, exc: AccountStoreError) -> JSONResponse:
        return JSONResponse(status_code=exc.http_status, content=_error_body(exc.message))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        detail = str(exc.errors()) if settings.APP_ENV == "dev" else None
        return JSONResponse(
            status_code=400,
            content=_error_body("Invalid request body.", detail),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        detail = str(exc) if settings.APP_ENV == "dev" else None
        return JSONResponse(
            status_code=500,
            content=_error_body("Internal server error", detail),
        )

    app.include_router(api_router, prefix=settings.API_PREFIX)
    if settings.LEGACY_ROUTES_ENABLED and settings.API_PREFIX:
        app.include_router(legacy_router)

    @app.get("/")
    def root() -> dict[str, str]:
        """Root route; minimal payload for discovery."""
        return {"message": f"{settings.SERVICE_NAME} API"}

    return app


app = create_app()
