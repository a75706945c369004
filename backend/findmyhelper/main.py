"""
FindMyHelper Backend — FastAPI Application Factory
====================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires middleware, exception handlers and routers, and
       stores the long-lived collaborators on app.state. Anything not
       injected is built from settings: cheap objects immediately, the
       storage backend and upload service in the lifespan.
Who:   uvicorn (`uvicorn findmyhelper.main:app`) and the test suite, which
       passes MemoryStorage and a recording email backend.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌────────────┐ ┌──────────┐ ┌──────────┐ ┌──────────┐   │
    │  │  Req ID    │→│Rate Limit│→│ Logging  │→│   CORS   │   │
    │  └────────────┘ └──────────┘ └──────────┘ └──────────┘   │
    │                                                          │
    │  Routers (/api): auth, users, categories, providers,     │
    │  tasks, service-requests, reviews, uploads, admin        │
    │  plus GET /health                                        │
    │                                                          │
    │  app.state: config, storage, notifier, uploads,          │
    │             token_verifier                               │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Configure logging
    2. Validate configuration (production refuses to start on errors)
    3. Build and initialize the storage backend (see storage.build_storage)
    4. Build the upload service
    5. Purge expired sessions
    6. Promote verified accounts listed in ADMIN_EMAILS

    Shutdown:
    1. Close the storage backend (dispose the engine pool)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from findmyhelper import __version__
from findmyhelper.config import Settings, settings as default_settings
from findmyhelper.exceptions import (
    AuthenticationError,
    ConflictError,
    DatabaseError,
    EmailNotVerifiedError,
    FileStorageError,
    FindMyHelperError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitExceededError,
    ValidationError,
)
from findmyhelper.middleware.logging import RequestLoggingMiddleware
from findmyhelper.middleware.rate_limit import RateLimitMiddleware
from findmyhelper.middleware.request_id import RequestIDMiddleware, request_id_var
from findmyhelper.routes import (
    admin,
    auth,
    categories,
    health,
    providers,
    reviews,
    service_requests,
    tasks,
    uploads,
    users,
)
from findmyhelper.services.approval import ProviderApprovalWorkflow
from findmyhelper.services.firebase import IdentityTokenVerifier, build_token_verifier
from findmyhelper.services.identity import IdentityService
from findmyhelper.services.notifications import Notifier, build_notifier
from findmyhelper.services.object_storage import ImageUploadService, build_upload_service
from findmyhelper.services.sessions import SessionManager
from findmyhelper.storage import build_storage
from findmyhelper.storage.base import Storage

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(config: Settings) -> None:
    """Configure the root logger once, on startup, before anything logs."""
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers that are chatty at INFO
    for name in ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx", "botocore"):
        logging.getLogger(name).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    config: Settings = app.state.config

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(config)
    logger.info("=" * 60)
    logger.info("%s backend %s starting (%s)", config.app_name, __version__, config.environment)

    try:
        config.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")
        raise

    if app.state.storage is None:
        app.state.storage = await build_storage(config)
    if app.state.uploads is None:
        app.state.uploads = build_upload_service(config)

    await SessionManager(app.state.storage, config).purge_expired()

    if config.admin_emails_set:
        identity = IdentityService(
            app.state.storage,
            app.state.notifier,
            ProviderApprovalWorkflow(app.state.storage, app.state.notifier),
            admin_emails=config.admin_emails_set,
        )
        promoted = await identity.promote_configured_admins()
        logger.info("Admin bootstrap: %d account(s) promoted from ADMIN_EMAILS", promoted)

    logger.info("Storage backend: %s", app.state.storage.backend_name)
    logger.info("Email backend: %s", config.email_backend)
    logger.info("Object storage: %s", config.object_storage_backend)
    logger.info("Server ready at http://%s:%d", config.backend_host, config.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("%s backend shutting down...", config.app_name)
    await app.state.storage.close()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error(
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    content: Dict[str, Any] = {"error": error, "message": message}
    if details:
        content["details"] = details
    content["request_id"] = request_id_var.get("")
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP status codes and the shared error body.

    Handler hierarchy:
        RequestValidationError  → 400 (schema-level: wrong types, missing fields)
        ValidationError         → 400
        AuthenticationError     → 401
        EmailNotVerifiedError   → 403
        PermissionDeniedError   → 403
        NotFoundError           → 404
        ConflictError           → 409
        RateLimitExceededError  → 429
        DatabaseError           → 500 (generic message)
        FileStorageError        → 500
        FindMyHelperError       → 500
        Exception (fallback)    → 500

    Internal context (SQL errors, file paths, SDK messages) is logged and
    never returned.
    """

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = []
        for err in exc.errors():
            loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
            errors.append({"field": ".".join(loc) or None, "message": err.get("msg", "Invalid value")})
        logger.warning("[%s] Request validation failed: %s", request_id_var.get(""), errors)
        first = errors[0]["message"] if errors else "Invalid request"
        return _error(400, "validation_error", first, {"errors": errors})

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return _error(401, "authentication_required", exc.message)

    @app.exception_handler(EmailNotVerifiedError)
    async def handle_email_not_verified(request: Request, exc: EmailNotVerifiedError):
        return _error(403, "email_not_verified", exc.message)

    @app.exception_handler(PermissionDeniedError)
    async def handle_permission_denied(request: Request, exc: PermissionDeniedError):
        logger.warning("[%s] Permission denied: %s", request_id_var.get(""), exc.message)
        return _error(403, "permission_denied", exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error(404, "not_found", exc.message)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        logger.info("[%s] Conflict: %s", request_id_var.get(""), exc.message)
        return _error(409, "conflict", exc.message, exc.context)

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return _error(
            429,
            "rate_limit_exceeded",
            exc.message,
            exc.context,
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error(
            "[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context
        )
        return _error(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        logger.error(
            "[%s] File storage error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error(500, "server_error", exc.message)

    @app.exception_handler(FindMyHelperError)
    async def handle_app_error(request: Request, exc: FindMyHelperError):
        logger.error(
            "[%s] Unhandled application error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error(500, "server_error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return _error(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    storage: Optional[Storage] = None,
    notifier: Optional[Notifier] = None,
    upload_service: Optional[ImageUploadService] = None,
    token_verifier: Optional[IdentityTokenVerifier] = None,
    config: Optional[Settings] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        storage: pre-initialized Storage; built by the lifespan when omitted.
        notifier: email notifier; defaults to the configured email backend.
        upload_service: image upload service; built by the lifespan when omitted.
        token_verifier: federated ID token verifier; defaults to Firebase.
        config: settings; defaults to the process-wide `settings`.
    """
    config = config or default_settings

    app = FastAPI(
        title=f"{config.app_name} API",
        description=(
            "Two-sided service marketplace: clients post tasks and hire approved "
            "service providers; admins review provider applications."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.storage = storage
    app.state.notifier = notifier or build_notifier(config)
    app.state.uploads = upload_service
    app.state.token_verifier = token_verifier or build_token_verifier(config)

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → RateLimit → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_credentials=True,  # session cookie
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=config.auth_rate_limit_requests,
        window_seconds=config.auth_rate_limit_window,
    )
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(categories.router)
    app.include_router(providers.router)
    app.include_router(tasks.router)
    app.include_router(service_requests.router)
    app.include_router(reviews.router)
    app.include_router(uploads.router)
    app.include_router(admin.router)
    app.include_router(health.router)

    return app


app = create_app()
