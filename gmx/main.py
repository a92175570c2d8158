from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from contextlib import asynccontextmanager
import logging

from prometheus_client import make_asgi_app
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from gmx.core.config import settings
from .routers import webhook, maintenance
from .core.maintenance_state import MaintenanceState
from .core.siteinfo import SiteDirectory
from .core.scheduler import init_scheduler, start_scheduler, shutdown_scheduler, get_scheduled_jobs

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)


def configure_logging():
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()

    # an error on the initial load of the siteinfo data is fatal
    directory = SiteDirectory(settings.PROJECT, settings.SITEINFO_URL, timeout=settings.SITEINFO_TIMEOUT)
    directory.reload()

    app.state.github_secret = settings.github_secret()
    app.state.maintenance = MaintenanceState.load(settings.STATE_FILE, directory, settings.PROJECT)

    init_scheduler(directory, app.state.maintenance)
    start_scheduler()
    yield
    shutdown_scheduler()

app = FastAPI(
    lifespan=lifespan,
    title="GitHub Maintenance Exporter",
    version="1.0.0",
    docs_url=None,
    redoc_url=None
)

#rate limiting
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

#security headers
@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response

app.include_router(webhook.router)
app.include_router(maintenance.router)

#prometheus scrape endpoint, served from /metrics/
app.mount("/metrics", make_asgi_app())

@app.get("/", include_in_schema=False, response_class=PlainTextResponse)
def read_root():
    return "GitHub Maintenance Exporter"

@app.get("/health", tags=["health"])
def health_check():
    return {
        "status": "healthy",
        "project_name": settings.PROJECT_NAME,
        "project": settings.PROJECT,
        "version": "1.0.0",
        "jobs": get_scheduled_jobs(),
    }

@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests"}
    )
