"""HTTP middleware: request context, access checks, limits and headers."""

import hmac
import os
import time
import uuid
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from rentalops import __version__
from rentalops.config import Settings
from rentalops.routers import metrics

logger = structlog.get_logger(__name__)

# Probes, metrics and docs never need the API key
PUBLIC_PATHS = frozenset(
    {"/", "/health", "/ready", "/metrics", "/docs", "/redoc", "/openapi.json"}
)

_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def _tracking_headers(request_id: str) -> dict[str, str]:
    return {"X-Request-ID": request_id, "X-API-Version": __version__}


def _error(
    status_code: int, detail: str, request_id: str, retryable: bool = False
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "retryable": retryable},
        headers=_tracking_headers(request_id),
    )


def _bind_request_context(request: Request, request_id: str, settings: Settings) -> None:
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )
    user_id = (request.headers.get(settings.user_id_header_name) or "").strip()
    if user_id:
        structlog.contextvars.bind_contextvars(user_id=user_id)


def _check_api_key(
    request: Request, settings: Settings, request_id: str
) -> Optional[JSONResponse]:
    """Rejection response when an API key is configured and not matched."""
    if not settings.api_key or request.url.path in PUBLIC_PATHS:
        return None

    header = settings.api_key_header_name
    provided = request.headers.get(header)
    if not provided:
        logger.warning("api_key_missing")
        return _error(401, f"API key required in the {header} header", request_id)
    if not hmac.compare_digest(provided.encode(), settings.api_key.encode()):
        logger.warning("api_key_invalid")
        return _error(403, "Invalid API key", request_id)
    return None


def _check_body_size(
    request: Request, settings: Settings, request_id: str
) -> Optional[JSONResponse]:
    declared = request.headers.get("content-length")
    if not declared or not declared.isdigit():
        return None

    size = int(declared)
    if size <= settings.max_request_body_size:
        return None

    logger.warning(
        "request_body_too_large",
        content_length=size,
        max_size=settings.max_request_body_size,
    )
    return _error(
        413,
        f"Request body exceeds {settings.max_request_body_size} bytes",
        request_id,
    )


def create_request_middleware(settings: Settings):
    """Build the per-request middleware bound to ``settings``."""

    async def request_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        _bind_request_context(request, request_id, settings)

        rejection = _check_api_key(request, settings, request_id) or _check_body_size(
            request, settings, request_id
        )
        if rejection is not None:
            return rejection

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request_failed")
            return _error(500, "Internal server error", request_id)
        elapsed = time.perf_counter() - started

        response.headers.update(_tracking_headers(request_id))
        response.headers["X-Response-Time-Ms"] = f"{elapsed * 1000:.2f}"

        if request.url.path != "/metrics":
            metrics.record_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code,
                duration=elapsed,
            )

        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round(elapsed * 1000, 2),
        )
        return response

    return request_middleware


async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    response.headers.update(_SECURITY_HEADERS)
    if request.headers.get("X-Forwarded-Proto") == "https":
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains"
        )
    return response


def setup_rate_limiter(app: FastAPI, settings: Settings) -> Limiter:
    """Per-client-IP request budget applied to every route."""
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[f"{settings.rate_limit_requests_per_minute}/minute"],
        enabled=settings.rate_limit_enabled,
    )
    app.state.limiter = limiter
    app.add_exception_handler(
        RateLimitExceeded, _rate_limit_exceeded_handler  # type: ignore[arg-type]
    )
    app.add_middleware(SlowAPIMiddleware)
    return limiter


def setup_cors(app: FastAPI) -> None:
    """CORS from the comma-separated CORS_ORIGINS env var ("*" when unset)."""
    raw = os.environ.get("CORS_ORIGINS", "*").strip()
    origins = ["*"] if raw == "*" else [o.strip() for o in raw.split(",") if o.strip()]
    if origins == ["*"]:
        logger.warning("cors_allow_all_origins")
    else:
        logger.info("cors_origins_configured", origins=origins)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Install middleware. The last one added runs first on a request."""
    setup_rate_limiter(app, settings)
    setup_cors(app)
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(create_request_middleware(settings))
