"""
FastAPI application for the Device Attestation Service

Run with:
    uvicorn attest.api.main:create_app --factory --ssl-keyfile key.pem --ssl-certfile cert.pem
or:
    python -m attest.api.main
"""
from fastapi import FastAPI, Request as FastAPIRequest
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
import logging
import threading
import time
import uuid
from typing import Optional

from attest.api.rate_limiting import PlaceRateLimiter, PlaceRateLimitMiddleware
from attest.api.responses import sanitize_error_message, status_description
from attest.api.routes.attest import DEFAULT_PREFIX, get_attest_router
from attest.api.service import AttestationService
from attest.core.config import Settings, get_settings

logger = logging.getLogger(__name__)
error_logger = logging.getLogger("attest.errors")

# Seconds between rate limiter cleanups
RATE_LIMIT_CLEANUP_INTERVAL = 300


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Cache-Control"] = "no-store"
        return response


def create_app(
    service: Optional[AttestationService] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Create the attestation API.

    Args:
        service: Pre-built service (tests); built from settings when omitted
        settings: Settings to use (default: get_settings())
    """
    settings = settings or get_settings()
    if service is None:
        service = AttestationService.from_settings(settings)

    app = FastAPI(
        title="Device Attestation API",
        description="Proves root access on managed macOS devices via MDM-pushed tokens",
        version="1.0.0",
        docs_url=None,
        redoc_url=None,
    )
    app.state.attestation = service

    limiter = PlaceRateLimiter(rate_per_minute=settings.place_rate_limit_per_minute)
    app.state.rate_limiter = limiter
    stop_cleanup = threading.Event()

    # Global exception handler for safe error messages
    @app.exception_handler(Exception)
    async def global_exception_handler(request: FastAPIRequest, exc: Exception):
        """
        Log unexpected errors internally with an error ID and return the
        generic error envelope to the client.
        """
        error_id = str(uuid.uuid4())
        error_logger.error(
            f"Error {error_id}: {type(exc).__name__}: {sanitize_error_message(str(exc))}",
            exc_info=exc,
            extra={
                "error_id": error_id,
                "path": request.url.path,
                "method": request.method,
            }
        )
        return JSONResponse(
            status_code=500,
            content={"code": 500, "description": status_description(500)},
        )

    @app.on_event("startup")
    async def startup_event():
        """Start cache sweeps and rate limiter cleanup"""
        service.start()

        def cleanup_loop():
            while not stop_cleanup.wait(RATE_LIMIT_CLEANUP_INTERVAL):
                limiter.cleanup_old_entries()
                logger.debug("Rate limiter cleanup complete")

        threading.Thread(target=cleanup_loop, name="rate-limit-cleanup", daemon=True).start()
        logger.info("Attestation service started")

    @app.on_event("shutdown")
    async def shutdown_event():
        stop_cleanup.set()
        service.stop()
        logger.info("Attestation service stopped")

    app.add_middleware(PlaceRateLimitMiddleware, limiter=limiter, paths=[f"{DEFAULT_PREFIX}/place"])
    app.add_middleware(SecurityHeadersMiddleware)

    app.include_router(get_attest_router(service))

    @app.get("/health")
    async def health_check():
        """Health check endpoint (no auth required)"""
        return {"status": "healthy", "version": "1.0.0", "time": int(time.time())}

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format=settings.log_format)
    uvicorn.run(
        create_app(settings=settings),
        host=settings.api_host,
        port=settings.api_port,
        ssl_certfile=settings.ssl_certfile,
        ssl_keyfile=settings.ssl_keyfile,
    )
