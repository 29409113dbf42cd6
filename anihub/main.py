import asyncio
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from anihub.api.routes import router
from anihub.config.settings import settings
from anihub.utils.browser import browser_manager
from anihub.utils.database import setup_database, teardown_database, cleanup_expired_data
from anihub.utils.errors import AniHubError
from anihub.utils.http_client import http_client
from anihub.utils.logger import setup_logger, app_logger, api_logger


# ===========================
# Logger Setup
# ===========================
setup_logger(settings.LOG_LEVEL)


# ===========================
# Custom Middleware
# ===========================
class LoguruMiddleware(BaseHTTPMiddleware):
    """Logs one line per request and exposes the handling time as a header."""

    QUIET_PATHS = {"/health", "/favicon.ico"}

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            response.headers["X-Process-Time"] = f"{time.perf_counter() - started:.3f}"
            return response
        except Exception as e:
            api_logger.error(f"{request.method} {request.url.path} raised {type(e).__name__}")
            raise
        finally:
            if request.url.path not in self.QUIET_PATHS:
                elapsed = time.perf_counter() - started
                api_logger.debug(f"{request.method} {request.url.path} -> {status} ({elapsed:.2f}s)")


# ===========================
# Application Lifecycle
# ===========================
@asynccontextmanager
async def lifespan(app: FastAPI):
    await setup_database()
    cleanup_task = asyncio.create_task(cleanup_expired_data())

    yield

    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass

    await browser_manager.close()
    await http_client.close()
    await teardown_database()


# ===========================
# FastAPI Application Setup
# ===========================
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

app.add_middleware(LoguruMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


# ===========================
# Exception Handlers
# ===========================
@app.exception_handler(AniHubError)
async def anihub_error_handler(request: Request, exc: AniHubError):
    if exc.status_code >= 500:
        api_logger.error(f"{request.url.path} failed: {exc.message}")
    else:
        api_logger.debug(f"{request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    api_logger.error(f"{request.url.path} crashed: {type(exc).__name__}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ===========================
# Application Entry Point
# ===========================
if __name__ == "__main__":

    app_logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    app_logger.info(f"Server: http://localhost:{settings.PORT}/")
    app_logger.info(f"AnimeHeaven: {settings.ANIMEHEAVEN_URL or 'NOT CONFIGURED'}")
    app_logger.info(f"9anime: {settings.NINEANIME_URL or 'NOT CONFIGURED'}")
    app_logger.info(f"AnimePahe: {settings.ANIMEPAHE_URL or 'NOT CONFIGURED'}")
    app_logger.info(f"Spotify search: {'enabled' if settings.SPOTIFY_CLIENT_ID else 'disabled'}")
    app_logger.info(f"Database: {settings.DATABASE_TYPE} v{settings.DATABASE_VERSION}")
    app_logger.info(f"Proxy: {'enabled' if settings.PROXY_URL else 'disabled'}")
    app_logger.info(f"Match threshold: {settings.MATCH_THRESHOLD}")
    app_logger.info(f"Log level: {settings.LOG_LEVEL}")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.PORT,
        log_config=None
    )
