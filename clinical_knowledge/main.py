"""FastAPI application for the clinical knowledge engine.

This module provides the main FastAPI application with:
- Lifespan management for secrets, the ledger store and the oracle agents
- Error rendering as `{success: false, error, code, retryable}`
- CORS middleware
- Route registration
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, get_settings
from .engine import KnowledgeService
from .errors import KnowledgeEngineError
from .infrastructure import AnalysisCache, AsyncPostgreSQLLedgerStore, InMemoryLedgerStore, SecretStore
from .oracle import OracleClient
from .oracle.model_registry import ModelRegistry
from .routes import aggregates, analysis, interview

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def required_secrets(settings: Settings) -> list[str]:
    """Secrets the configured modes cannot start without."""
    names = []
    if settings.key_vault_name:
        names.append("AZURE-OPENAI-API-KEY")
    if settings.ledger_backend == "postgres":
        names.append("POSTGRES-ADMIN-PASSWORD")
    if settings.auth_mode == "jwt":
        names.append("AUTH-JWT-SECRET")
    return names


async def create_store(settings: Settings, secrets: SecretStore):
    """Create the ledger store for the configured backend."""
    if settings.ledger_backend == "memory":
        logger.info("Using in-memory ledger store (local testing only)")
        return InMemoryLedgerStore(lock_timeout_ms=settings.ledger_lock_timeout_ms)

    store = AsyncPostgreSQLLedgerStore(lock_timeout_ms=settings.ledger_lock_timeout_ms)
    postgres_password = secrets.get_secret("POSTGRES-ADMIN-PASSWORD")
    await store.connect(
        settings.get_postgres_connection_string(postgres_password),
        min_size=settings.postgres_pool_min_size,
        max_size=settings.postgres_pool_max_size,
    )
    return store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan.

    Loads secrets, connects the ledger store and the optional analysis cache,
    and builds the oracle agents on startup. Closes connections on shutdown.
    """
    # Agent construction pulls in the agent framework; import only when serving
    from .oracle.factory import build_agent_provider

    app_settings = get_settings()
    logger.info(
        f"Starting application with ledger backend: {app_settings.ledger_backend}, "
        f"auth mode: {app_settings.auth_mode}"
    )

    # Initialize secret store and pre-load all secrets
    secrets = SecretStore(vault_name=app_settings.key_vault_name)
    secrets.load_secrets(required_secrets(app_settings), optional=["REDIS-PASSWORD"])
    app.state.secrets = secrets

    # Cloud mode resolves models through the registry, local mode through env settings
    registry = ModelRegistry(secrets) if app_settings.key_vault_name else None
    app.state.model_registry = registry

    store = await create_store(app_settings, secrets)
    app.state.store = store

    cache = None
    if app_settings.analysis_cache_enabled:
        cache = AnalysisCache()
        await cache.connect(
            redis_host=app_settings.redis_host,
            redis_password=secrets.get_secret("REDIS-PASSWORD") if secrets.has_secret("REDIS-PASSWORD") else None,
            redis_port=app_settings.redis_port,
            redis_ssl=app_settings.redis_ssl,
            ttl_seconds=app_settings.analysis_cache_ttl_seconds,
        )
        logger.info("Initialized with Redis analysis cache")
    app.state.cache = cache

    oracle = OracleClient(
        build_agent_provider(registry, app_settings.oracle_model),
        timeout_seconds=app_settings.oracle_timeout_seconds,
    )
    app.state.knowledge_service = KnowledgeService(store, oracle, app_settings, cache=cache)

    yield

    # Cleanup on shutdown
    logger.info("Shutting down application")
    if cache:
        await cache.close()
    await store.close()


async def engine_error_handler(request: Request, exc: KnowledgeEngineError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail), "code": "http_error", "retryable": False},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": "Invalid request body",
            "code": "invalid_request",
            "retryable": False,
            "details": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="Clinical Knowledge Engine API",
        description="Accumulates diagnoses, solutions and memory from oracle analysis of conversations",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(KnowledgeEngineError, engine_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Include routers
    app.include_router(analysis.router, prefix="/api", tags=["analysis"])
    app.include_router(interview.router, prefix="/api", tags=["interview"])
    app.include_router(aggregates.router, prefix="/api", tags=["aggregates"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


# Create the app instance
app = create_app()
