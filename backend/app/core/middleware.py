from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from app.core.config import Settings
from app.core.rate_limiter import RateLimiter


def register_middleware(app: FastAPI, settings: Settings, limiter: RateLimiter) -> None:
    allowed_origins = set(settings.CORS_ORIGINS)
    allow_any = "*" in allowed_origins
    exempt_paths = {f"{settings.API_PREFIX}/health"}

    # Each registration wraps the previous one: rate limit runs innermost,
    # security headers outermost so preflights and 429s carry them too.
    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        if request.method == "OPTIONS" or request.url.path in exempt_paths:
            return await call_next(request)

        key = request.client.host if request.client else "unknown"
        if settings.TRUST_PROXY_HEADERS:
            forwarded = request.headers.get("x-forwarded-for")
            if forwarded:
                key = forwarded.split(",")[0].strip() or key

        if not limiter.hit(key):
            return JSONResponse(
                status_code=429,
                content={"status": "error", "message": "Too many requests"},
                headers={"Retry-After": str(limiter.window_seconds)},
            )
        return await call_next(request)

    @app.middleware("http")
    async def cors_middleware(request: Request, call_next):
        if request.method == "OPTIONS":
            response = Response(status_code=204)
        else:
            response = await call_next(request)

        origin = request.headers.get("origin")
        if origin and (allow_any or origin in allowed_origins):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"

        response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization, x-admin-token"
        return response

    @app.middleware("http")
    async def security_headers_middleware(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=15552000; includeSubDomains"
        return response
