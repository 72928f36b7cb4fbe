"""
Main application entry point - FastAPI app instance and configuration.
Run with: uvicorn agentauth.main:app --reload
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from agentauth.core.config import settings
from agentauth.core.exceptions import BrokerError
from agentauth.core.logger import setup_logging
from agentauth.routers import api_keys, auth, connect, connections, credentials, oauth, scopes, tenants, tokens


setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger("agentauth.main")

# ---------------------------------------------------------------------------
# CREATE FASTAPI APPLICATION
# ---------------------------------------------------------------------------
app = FastAPI(
    title=settings.APP_NAME,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ---------------------------------------------------------------------------
# CORS MIDDLEWARE
# ---------------------------------------------------------------------------
# Tenant backends call the /v1 API server-to-server; the dashboard may be
# served from another origin.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# EXCEPTION HANDLERS
# ---------------------------------------------------------------------------
# Every error leaves the API as {"error": <code>, "message": <text>}.

INTERNAL_ERROR_BODY = {"error": "internal_error", "message": "An unexpected error occurred."}


@app.exception_handler(BrokerError)
async def broker_error_handler(request: Request, exc: BrokerError):
    if exc.status_code >= 500:
        logger.error(
            f"{request.method} {request.url.path} failed: {exc.code} ({exc.message})",
            exc_info=exc,
        )
        return JSONResponse(status_code=exc.status_code, content=INTERNAL_ERROR_BODY)

    logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}")

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "The request is invalid."
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "invalid_request", "message": message},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    code = "not_found" if exc.status_code == 404 else "invalid_request"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": code, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=INTERNAL_ERROR_BODY)


# ---------------------------------------------------------------------------
# REGISTER ROUTERS
# ---------------------------------------------------------------------------
# Public broker API (API key):  /v1/connect-url, /v1/token, /v1/connections
# Public, unauthenticated:      /v1/scopes, /api/oauth/callback, /oauth-*
# Dashboard (session JWT):      /auth, /tenants, /api-keys, /credentials
app.include_router(connect.router)
app.include_router(tokens.router)
app.include_router(connections.router)
app.include_router(scopes.router)
app.include_router(oauth.router)
app.include_router(auth.router)
app.include_router(tenants.router)
app.include_router(api_keys.router)
app.include_router(credentials.router)


# ---------------------------------------------------------------------------
# HEALTH CHECK ENDPOINT
# ---------------------------------------------------------------------------
@app.get("/health", tags=["health"])
def health_check():
    """
    Liveness probe. Does NOT check database connectivity.

    Returns:
        {"status": "ok"}
    """
    return {"status": "ok"}
