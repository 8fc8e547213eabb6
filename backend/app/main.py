"""ASGI application for the magic link auth service.

Run with ``uvicorn app.main:app``. Tests build their own instance through
create_app() so settings can be patched first.
"""

from typing import Any

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.middleware.httpsredirect import HTTPSRedirectMiddleware

from app.api.router import router as api_router
from app.core.config import settings
from app.core.errors import APIError, InternalError
from app.core.rate_limiting import limiter, rate_limit_exceeded_handler
from app.core.responses import ErrorDetail, ErrorResponse

logger = structlog.get_logger()

# Sent on every response. The API never serves HTML, so nothing may load
# or frame it.
_ALWAYS_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}

# Routes may set a stricter value (the consume redirect sends no-referrer)
_DEFAULT_HEADERS = {
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

_HSTS = "max-age=31536000; includeSubDomains"

# Responses under this prefix carry session cookies
_NO_STORE_PREFIX = "/auth/"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Stamp security headers onto every response.

    Auth responses are additionally marked no-store. HSTS is only sent in
    production, where TLS terminates in front of the app.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        response.headers.update(_ALWAYS_HEADERS)
        for name, value in _DEFAULT_HEADERS.items():
            response.headers.setdefault(name, value)
        if request.url.path.startswith(_NO_STORE_PREFIX):
            response.headers["Cache-Control"] = "no-store"
        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = _HSTS
        return response


def _error_response(error: APIError) -> JSONResponse:
    """Render an APIError as the {"error": ...} envelope."""
    body = ErrorResponse(
        error=ErrorDetail(
            code=error.code, message=error.message, details=error.details
        )
    )
    return JSONResponse(status_code=error.status_code, content=body.model_dump())


def _on_api_error(_request: Request, exc: APIError) -> JSONResponse:
    return _error_response(exc)


def _on_validation_error(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report FastAPI parameter validation as a 400.

    The magic link request body is parsed by hand and never reaches this
    handler, so its response stays independent of the input.
    """
    details: list[dict[str, Any]] = [
        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]
    return _error_response(
        APIError(
            code="VALIDATION_ERROR",
            message="Request validation failed",
            status_code=400,
            details=details,
        )
    )


def _on_unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception", exc_info=exc, path=request.url.path)
    return _error_response(InternalError())


def _install_middleware(app: FastAPI) -> None:
    # Added last runs first: CORS answers preflights before anything else
    app.add_middleware(SecurityHeadersMiddleware)
    if settings.environment == "production":
        # Behind a proxy, uvicorn needs --proxy-headers to see the real scheme
        app.add_middleware(HTTPSRedirectMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept"],
    )


def create_app() -> FastAPI:
    """Build the application with middleware, error handlers and routes."""
    app = FastAPI(
        title="Caberu Auth API",
        version="1.0.0",
        description="Magic link sign-in and migrated account claiming",
    )
    _install_middleware(app)

    app.add_exception_handler(APIError, _on_api_error)
    app.add_exception_handler(RequestValidationError, _on_validation_error)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, _on_unhandled_error)
    app.state.limiter = limiter

    app.include_router(api_router)

    @app.get("/health")
    def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    return app


app = create_app()
