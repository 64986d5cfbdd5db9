"""
api/main.py -- the Postboard ASGI app.

  python main.py serve            (uvicorn under the hood)
  uvicorn api.main:app --reload

Startup wires one SQLAlchemy engine, the two stores and the TokenService onto
app.state; request handlers only ever read them from there. Routers live in
api/routes/v1 and are mounted under /api/v1.
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.comments import router as comments_router
from api.routes.v1.posts import router as posts_router
from api.routes.v1.users import router as users_router
from auth.dependencies import require_admin
from auth.models import Identity
from auth.store import UserStore
from auth.tokens import TokenService
from blog.store import BlogStore
from core.config import get_settings
from core.database import create_db_engine
from core.errors import AppError, ErrorKind

API_VERSION = "1.0.0"

settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("postboard.api")

# ---------------------------------------------------------------------------
# Startup / shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the engine and everything that shares it; dispose of it on exit."""
    logger.info("Postboard API starting up")
    engine = create_db_engine(settings.database_url)
    app.state.settings = settings
    app.state.engine = engine
    app.state.user_store = UserStore(engine)
    app.state.blog_store = BlogStore(engine)
    app.state.token_service = TokenService(settings.secret_key, settings.token_expire_seconds)
    if not app.state.user_store.has_users():
        logger.warning("No accounts exist yet -- run 'python main.py create-admin' to bootstrap an administrator")
    logger.info("Storage initialized (%s)", engine.url.render_as_string(hide_password=True))

    yield

    engine.dispose()
    logger.info("Postboard API shutdown complete")


app = FastAPI(
    title="Postboard API",
    description="Posts and comments with JWT authentication, roles and ownership checks.",
    version=API_VERSION,
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware
#
# Starlette wraps each add_middleware() call around the previous ones, so the
# last one added sees the request first. Effective order on the way in:
# log_requests -> TrustedHost -> CORS -> SlowAPI -> router.
# ---------------------------------------------------------------------------

# slowapi finds the limiter on app.state.
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    client = request.client.host if request.client else "-"
    logger.info("%s %s -> %d (%.1fms) from %s", request.method, request.url.path, response.status_code, elapsed_ms, client)
    return response


app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(posts_router, prefix="/api/v1", tags=["Posts"])
app.include_router(comments_router, prefix="/api/v1", tags=["Comments"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])


# ---------------------------------------------------------------------------
# Swagger UI: /docs for everyone, /docs/admin behind an admin token.
# ---------------------------------------------------------------------------


@app.get("/docs", include_in_schema=False)
async def docs():
    return get_swagger_ui_html(openapi_url="/openapi.json", title="Postboard API")


@app.get("/docs/admin", include_in_schema=False)
def admin_docs(identity: Identity = Depends(require_admin)):
    return get_swagger_ui_html(openapi_url="/openapi.json", title="Postboard API (admin)")


# ---------------------------------------------------------------------------
# Error rendering
#
# Every failure, expected or not, leaves as {"error": {code, message, detail}}.
# ---------------------------------------------------------------------------


def _error_response(
    status_code: int,
    code: str,
    message: str,
    detail: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
        headers=headers,
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render any AppError with the status fixed for its kind in core.errors."""
    headers = None
    if exc.kind is ErrorKind.AUTHENTICATION_REQUIRED:
        headers = {"WWW-Authenticate": "Bearer"}
    return _error_response(exc.status_code, exc.kind.value, exc.message, headers=headers)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429, with Retry-After set to the window length of the limit that tripped."""
    retry_after = exc.limit.limit.get_expiry()
    return _error_response(
        429,
        "rate_limited",
        "Too many requests, please try again later.",
        detail=str(exc.detail),
        headers={"Retry-After": str(retry_after)},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed body, path or query parameters are a 400, not FastAPI's 422."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return _error_response(400, ErrorKind.VALIDATION_ERROR.value, "Request validation failed.", detail=problems)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown paths, wrong methods and HTTPExceptions raised by dependencies."""
    code = ErrorKind.NOT_FOUND.value if exc.status_code == 404 else f"http_{exc.status_code}"
    return _error_response(exc.status_code, code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unhandled becomes a 500. str(exc) is only exposed under DEBUG."""
    logger.exception("Unhandled error during %s %s", request.method, request.url.path)
    return _error_response(
        500,
        ErrorKind.INTERNAL.value,
        "An unexpected error occurred.",
        detail=str(exc) if settings.debug else None,
    )


# ---------------------------------------------------------------------------
# Health (never rate limited)
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
@limiter.exempt
def health(request: Request) -> HealthResponse:
    """Return API liveness, current version and a database round-trip check."""
    components = {"app": "ok", "database": "ok"}
    try:
        with request.app.state.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check: database unreachable")
        components["database"] = "error"
    status = "healthy" if components["database"] == "ok" else "degraded"
    return HealthResponse(status=status, version=API_VERSION, components=components)
