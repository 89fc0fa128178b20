"""FastAPI application entrypoint. No business logic; only wiring, middleware and error mapping."""

from dotenv import load_dotenv

load_dotenv()

import asyncio
import logging
from collections.abc import Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.middleware import AuthenticationMiddleware
from app.api.v1 import router as v1_router
from app.core.config import Settings, get_settings
from app.core.errors import AuthenticationError, ServiceError
from app.services.token_signer import TokenSigner
from app.services.token_sweep import TokenSweeper
from app.services.users import UserCache

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the refresh-token sweeper (when enabled) and stop it on shutdown."""
    settings: Settings = app.state.settings
    sweeper = None
    sweep_task = None
    if settings.TOKEN_SWEEP_ENABLED:
        sweeper = TokenSweeper(app.state.session_factory, settings)
        sweep_task = asyncio.create_task(sweeper.run_loop())
    app.state.sweeper = sweeper

    yield

    if sweeper is not None and sweep_task is not None:
        sweeper.stop()
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    headers = None
    if isinstance(exc, AuthenticationError):
        # The specific reason stays in the log; clients only see the generic message.
        logger.info(
            "Authentication failed: %s %s reason=%s",
            request.method,
            request.url.path,
            exc.reason,
        )
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers=headers,
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # Only field locations and messages; submitted values (passwords) are not echoed back.
    errors = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request body", "errors": errors},
    )


def create_app(
    settings: Settings | None = None,
    session_factory: Callable[[], Session] | None = None,
) -> FastAPI:
    """
    Build the application. Fails fast with ConfigurationError when JWT_SECRET
    is missing or shorter than 32 bytes.
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    if session_factory is None:
        from app.core.database import SessionLocal

        session_factory = SessionLocal

    app = FastAPI(
        title="Portfolio Auth API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.signer = TokenSigner.from_settings(settings)
    app.state.user_cache = UserCache()
    app.state.session_factory = session_factory

    app.add_middleware(AuthenticationMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.APP_ENV == "dev" else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(v1_router, prefix=settings.API_V1_PREFIX)

    @app.get("/")
    def root() -> dict[str, str]:
        """Root route; minimal payload for discovery."""
        return {"message": "Portfolio Auth API"}

    return app


app = create_app()
