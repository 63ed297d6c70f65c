"""
api/main.py -- FastAPI application entry point for CampaignHub.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost; Starlette puts the last-added
middleware outermost, so this is the reverse of registration order):
  1. log_requests            -- method, path, status, latency, client
  2. detect_request_language -- resolves language + fallback chain per request
  3. SlowAPIMiddleware       -- enforces per-route rate limits from api.limiter
  4. CORSMiddleware          -- adds CORS headers for allowed browser origins
  5. TrustedHostMiddleware   -- rejects requests with unexpected Host headers

Responses short-circuited by an inner layer are still logged and still carry
Content-Language.

Error envelope: every failure renders as {"error": {"code", "message",
"message_key", "detail"}}. AppError messages are translated with the
request's fallback chain, so a Spanish client gets Spanish errors where the
catalog has them and English otherwise.

Lifespan wires stores and services onto app.state and runs a periodic cache
purge; shutdown closes everything symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.dependencies import client_ip, request_languages, t
from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.admins import router as admins_router
from api.routes.v1.auth import router as auth_router
from api.routes.v1.dropdowns import router as dropdowns_router
from api.routes.v1.languages import router as languages_router
from api.routes.v1.settings import router as settings_router
from api.routes.v1.users import router as users_router
from auth.accounts import AccountService
from auth.admins import AdminService
from auth.dependencies import require_admin
from auth.mailer import Mailer
from auth.models import Admin
from auth.store import AdminStore, UserStore
from cache.store import LookupCache
from core.config import Settings, get_settings
from core.errors import AppError
from core.language import LanguageSignals, build_fallback_chain, detect_language
from sitesettings.service import SettingsService
from sitesettings.store import SettingsStore
from storage.files import LocalFileStorage
from taxonomy.service import TaxonomyService
from taxonomy.store import TaxonomyStore

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("campaignhub.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


def attach_services(
    app: FastAPI,
    settings: Settings,
    user_store: UserStore,
    admin_store: AdminStore,
    taxonomy_store: TaxonomyStore,
    settings_store: SettingsStore,
    cache: LookupCache,
    storage: LocalFileStorage,
    mailer: Mailer,
) -> None:
    """Construct the services from their collaborators and publish them on app.state.

    Shared by the real lifespan and the test suite so both wire identically.
    """
    app.state.user_store = user_store
    app.state.admin_store = admin_store
    app.state.cache = cache
    app.state.mailer = mailer
    app.state.accounts = AccountService(
        user_store,
        mailer,
        session_expire_seconds=settings.session_expire_seconds,
        logger=logging.getLogger("campaignhub.auth"),
    )
    app.state.admins = AdminService(
        admin_store,
        mailer,
        storage,
        session_expire_seconds=settings.admin_session_expire_seconds,
        max_upload_bytes=settings.max_upload_bytes,
        allowed_image_types=settings.allowed_image_types,
        logger=logging.getLogger("campaignhub.admin"),
    )
    app.state.taxonomy = TaxonomyService(
        taxonomy_store,
        cache,
        default_language=settings.default_language,
        logger=logging.getLogger("campaignhub.taxonomy"),
    )
    app.state.site_settings = SettingsService(
        settings_store,
        cache,
        storage,
        max_upload_bytes=settings.max_upload_bytes,
        logger=logging.getLogger("campaignhub.settings"),
    )


# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval: int) -> None:
    """Purge expired cache entries every `interval` seconds.

    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(interval)
        removed = app.state.cache.purge_expired()
        if removed:
            logger.info("Purged %d expired cache entries", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create stores and services on startup; close them on shutdown."""
    logger.info("CampaignHub API starting up")
    settings = get_settings()
    user_store = UserStore(settings.database_url)
    admin_store = AdminStore(settings.database_url)
    taxonomy_store = TaxonomyStore(settings.database_url)
    settings_store = SettingsStore(settings.database_url)
    cache = LookupCache(settings.cache_db_path, ttl=settings.cache_ttl_seconds)
    mailer = Mailer.from_settings(settings)
    attach_services(
        app,
        settings,
        user_store=user_store,
        admin_store=admin_store,
        taxonomy_store=taxonomy_store,
        settings_store=settings_store,
        cache=cache,
        storage=LocalFileStorage(settings.upload_dir),
        mailer=mailer,
    )
    if not mailer.enabled:
        logger.warning("EMAIL_API_KEY is not set -- activation and reset emails will not be delivered")
    if not admin_store.has_admins():
        logger.warning("No admin accounts exist -- create one with: python main.py create-admin")
    app.state.purge_task = asyncio.create_task(_purge_loop(app, settings.cache_purge_interval_seconds))

    yield

    app.state.purge_task.cancel()
    cache.close()
    mailer.close()
    for store in (user_store, admin_store, taxonomy_store, settings_store):
        store.close()
    logger.info("CampaignHub API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="CampaignHub API",
    description="Accounts, admin console, localized dropdowns, and site settings for the CampaignHub platform.",
    version=API_VERSION,
    lifespan=lifespan,
    # Built-in docs are replaced by admin-only routes below.
    docs_url=None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "Accept-Language", "X-Language"],
    expose_headers=["Content-Language"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def detect_request_language(request: Request, call_next):
    """Attach request.state.language and request.state.language_fallbacks.

    A language already placed on request.state by an outer layer is honoured
    only after the explicit signals (query, header, Accept-Language).
    """
    signals = LanguageSignals(
        query=request.query_params.get("lang"),
        header=request.headers.get("x-language"),
        accept_language=request.headers.get("accept-language"),
        context=getattr(request.state, "language", None),
        secondary_context=getattr(request.state, "i18n_lang", None),
    )
    language = detect_language(signals, default=_settings.default_language)
    request.state.language = language
    request.state.language_fallbacks = build_fallback_chain(language, default=_settings.default_language)
    response = await call_next(request)
    response.headers["Content-Language"] = language
    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        client_ip(request),
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(admins_router, prefix="/api/v1", tags=["Admins"])
app.include_router(languages_router, prefix="/api/v1", tags=["Languages"])
app.include_router(dropdowns_router, prefix="/api/v1", tags=["Dropdowns"])
app.include_router(settings_router, prefix="/api/v1", tags=["Settings"])


# ---------------------------------------------------------------------------
# Admin-only API documentation
# ---------------------------------------------------------------------------


@app.get("/docs", include_in_schema=False)
async def docs(admin: Admin = Depends(require_admin)):
    """Swagger UI -- requires an admin session."""
    return get_swagger_ui_html(openapi_url="/openapi.json", title="CampaignHub API")


@app.get("/redoc", include_in_schema=False)
async def redoc(admin: Admin = Depends(require_admin)):
    """ReDoc UI -- requires an admin session."""
    return get_redoc_html(openapi_url="/openapi.json", title="CampaignHub API")


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, detail: ErrorDetail) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=detail).model_dump())


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render a service-layer error with a localized message."""
    if exc.status_code >= 500:
        logger.warning("%s on %s %s (%s)", exc.code, request.method, request.url.path, exc.message_key)
    return _error(
        exc.status_code,
        ErrorDetail(
            code=exc.code,
            message=t(request, exc.message_key, **exc.params),
            message_key=exc.message_key,
            detail=exc.detail,
        ),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(
        429,
        ErrorDetail(
            code="rate_limited",
            message=t(request, "common.rate_limited"),
            message_key="common.rate_limited",
            detail=str(exc.detail),
        ),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies, query params, and path params are client errors (400)."""
    return _error(
        400,
        ErrorDetail(
            code="validation_error",
            message=t(request, "common.validation_failed"),
            message_key="common.validation_failed",
            detail=str(exc.errors()),
        ),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Structured envelope for routing-level errors (unknown path, wrong method)."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=ErrorDetail(code=f"http_{exc.status_code}", message=str(exc.detail))).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors. The traceback is logged, never returned."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(
        500,
        ErrorDetail(
            code="internal_error",
            message=t(request, "common.internal_error"),
            message_key="common.internal_error",
        ),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# No rate limit -- load balancer probes must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and a database connectivity check."""
    components = {"app": "ok"}
    try:
        request.app.state.user_store.ping()
        components["database"] = "ok"
    except SQLAlchemyError:
        logger.exception("Health check database probe failed")
        components["database"] = "error"
    return HealthResponse(
        status="healthy" if components["database"] == "ok" else "degraded",
        version=API_VERSION,
        language=request_languages(request)[0],
        components=components,
    )
