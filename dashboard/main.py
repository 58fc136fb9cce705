"""
Dashboard and chat backend.
Serves cached Strava summaries for the dashboard and an LLM chat that drives the Strava MCP server.
"""

import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from strava_mcp.errors import (
    AuthError,
    ConfigurationError,
    RateLimitError,
    SchemaError,
    StravaError,
    SubscriptionRequiredError,
    UpstreamError,
)

from .auth import router as auth_router
from .chat import router as chat_router
from .config import settings
from .deps import close_clients
from .limiter import limiter
from .routes import router as dashboard_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stderr
)
logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Strava API rate limit exceeded. Please try again in a few minutes."


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_clients()


app = FastAPI(title="Strava Dashboard", lifespan=lifespan)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_status(error: StravaError) -> int:
    if isinstance(error, ConfigurationError):
        return 500
    if isinstance(error, AuthError):
        return 401
    if isinstance(error, SubscriptionRequiredError):
        return 402
    if isinstance(error, RateLimitError):
        return 429
    if isinstance(error, SchemaError):
        return 502
    if isinstance(error, UpstreamError):
        return error.status or 502
    return 500


@app.exception_handler(StravaError)
async def strava_error_handler(request: Request, exc: StravaError):
    status = error_status(exc)
    logger.error(f"{request.method} {request.url.path} failed ({status}): {str(exc)}")
    message = RATE_LIMIT_MESSAGE if isinstance(exc, RateLimitError) else str(exc)
    return JSONResponse(status_code=status, content={"error": message})


# Include routers
app.include_router(dashboard_router, prefix="/api/dashboard", tags=["dashboard"])
app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(chat_router, prefix="/api", tags=["chat"])


@app.get("/")
def read_root():
    return {"message": "Strava Dashboard API is running"}


def main() -> None:
    try:
        logger.info(f"Starting Strava Dashboard on {settings.HOST}:{settings.PORT}")
        uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
    except Exception as e:
        logger.error(f"Server error: {str(e)}", exc_info=True)
        raise


if __name__ == "__main__":
    main()
