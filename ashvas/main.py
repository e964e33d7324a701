from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ashvas.core.config import settings
from ashvas.core.logging import setup_logging
from ashvas.core.middleware import StructlogMiddleware
from ashvas.modules.monitoring import service as monitoring_service
from ashvas.modules.monitoring.router import router as monitoring_router

setup_logging()
log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    if settings.MONITOR_AUTOSTART:
        await monitoring_service.monitoring_loop.start()
    else:
        log.info("monitoring autostart disabled; resume via POST /monitoring/pause")

    yield

    # Shutdown
    await monitoring_service.shutdown()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
    ## Ashvas Monitoring Core

    This API provides:
    * **State**: the escalation state (idle, calming, awaiting check-in, emergency) and alert history
    * **Check-in**: answer the "are you okay?" prompt before contacts are notified
    * **Controls**: pause/resume monitoring, manual SOS, mantra playback, emergency acknowledgment
    * **Streams**: Server-Sent Events and WebSocket feeds of state changes and toasts
    * **Ingestion**: push samples from a wearable when the queue source is enabled
    """,
    version="0.1.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(StructlogMiddleware)

app.include_router(
    monitoring_router,
    prefix=f"{settings.API_V1_STR}/monitoring",
    tags=["monitoring"],
)


@app.get("/health")
def health_check() -> dict[str, str]:
    return {"status": "ok"}
