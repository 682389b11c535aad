"""
Aeris Backend Application

FastAPI application serving room comfort analysis and ventilation guidance.
"""

import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from backend import api, log_config  # noqa: F401
from backend.api import router as api_router
from core.aeris.comfort_service import ComfortMonitorService
from core.aeris.ha_client import HAClient, HANotificationSink
from core.aeris.notifications import LogNotificationSink
from core.aeris.settings import AppSettings, load_settings


def create_service(settings: AppSettings) -> ComfortMonitorService:
    """Wire the comfort monitor from settings.

    Without Home Assistant credentials the monitor runs on demo data.
    """
    ha_client = None
    if settings.has_credentials:
        ha_client = HAClient(settings.ha_url, settings.ha_token)
        logger.info(f"🏠 Using Home Assistant at {settings.ha_url}")
    else:
        logger.warning("⚠️ No HA credentials, running with demo data")

    if ha_client and settings.notify_service:
        sink = HANotificationSink(ha_client, settings.notify_service)
        logger.info(f"🔔 Notifications via notify.{settings.notify_service}")
    else:
        sink = LogNotificationSink()

    return ComfortMonitorService(settings, ha_client=ha_client, notification_sink=sink)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan manager for startup/shutdown."""
    # Startup
    logger.info("Aeris starting")

    # Log registered routes
    routes = [
        f"{getattr(route, 'path', '?')} - {getattr(route, 'methods', ['MOUNT'])}"
        for route in app.routes
    ]
    logger.info(f"Registered routes: {routes}")

    settings = load_settings()
    service = create_service(settings)
    await service.start()

    # Make the monitor available to the API
    api.service = service

    yield

    # Shutdown
    logger.info("Aeris shutting down")
    await service.stop()
    api.service = None


# Create FastAPI application
app = FastAPI(
    title="Aeris API",
    description="Room comfort analysis and adaptive ventilation guidance",
    version=api.APP_VERSION,
    lifespan=lifespan,
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Handle all unhandled exceptions gracefully."""
    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    logger.error(f"Unhandled exception: {exc}")
    logger.error(f"Request path: {request.url.path}")
    logger.error(f"Stack trace:\n{tb_str}")

    return JSONResponse(
        status_code=500,
        content={
            "detail": str(exc),
            "type": type(exc).__name__,
            "message": "Internal server error",
        },
    )


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


# For development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8080)
