"""
FastAPI application entry point.

Run with:
    uvicorn backend.app.main:app --reload --port 8000

Or from the project root:
    python -m uvicorn backend.app.main:app --reload
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# ── Core infrastructure ──
from backend.app.core.config import settings
from backend.app.core.logging_config import setup_logging, get_logger
from backend.app.core.errors import register_error_handlers
from backend.app.core.middleware import RequestLoggingMiddleware
from backend.app.core.health import HealthStatus, run_health_check

# ── API routers ──
from backend.app.api.deps import Services, get_services, shutdown_services
from backend.app.api.v1.alerts import router as alert_router
from backend.app.api.v1.assess import router as assess_router
from backend.app.api.v1.monitor import router as monitor_router
from backend.app.api.v1.risk import router as risk_router
from backend.app.api.v1.weather import router as weather_router
from backend.app.risk.models import Coordinates

# ── Initialise logging ──
setup_logging()
logger = get_logger(__name__)


# ── Application lifespan (startup / shutdown) ──

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown events."""
    logger.info(
        "Starting %s v%s [%s]",
        settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT,
    )
    if settings.AUTO_START_MONITOR:
        services = get_services()
        await services.scheduler.select(
            Coordinates(settings.DEFAULT_LATITUDE, settings.DEFAULT_LONGITUDE)
        )
    yield
    await shutdown_services()
    logger.info("Shutting down %s", settings.APP_NAME)


# ── Create application ──

app = FastAPI(
    title=settings.APP_NAME,
    description=(
        "Multi-hazard risk assessment for a selected location. "
        "Combines live weather from WeatherAPI.com, terrain elevation from "
        "Open-Meteo and recent USGS earthquakes into flood, heavy rain, "
        "landslide, tsunami and earthquake scores, raises threshold alerts "
        "with deduplication, acknowledgement and dismissal, and keeps the "
        "selected location refreshed on a fixed interval."
    ),
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# ── Middleware stack (order matters — outermost first) ──

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS if not settings.CORS_ALLOW_ALL else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

# ── Error handlers ──
register_error_handlers(app)

# ── Register routers ──
app.include_router(assess_router)
app.include_router(risk_router)
app.include_router(alert_router)
app.include_router(monitor_router)
app.include_router(weather_router)


# ── Root & health endpoints ──

@app.get("/", tags=["root"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "modules": [
            "risk-scoring",
            "alert-lifecycle",
            "environment-gateway",
            "refresh-scheduler",
            "weather-forecast",
        ],
        "docs": "/docs",
    }


@app.get("/health", tags=["health"])
async def health_check(services: Services = Depends(get_services)):
    """Deep health probe — checks all subsystems."""
    report = await run_health_check(services)
    return report.to_dict()


@app.get("/health/live", tags=["health"])
async def liveness():
    """Kubernetes liveness probe — is the process alive?"""
    return {"status": "alive"}


@app.get("/health/ready", tags=["health"])
async def readiness(services: Services = Depends(get_services)):
    """Kubernetes readiness probe — can we serve traffic?"""
    report = await run_health_check(services)
    if report.status == HealthStatus.UNHEALTHY:
        return JSONResponse(status_code=503, content=report.to_dict())
    return report.to_dict()
