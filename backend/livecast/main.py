"""FastAPI application entry point."""

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from livecast.core.config import settings
from livecast.core.logging import setup_logging
from livecast.core.metrics import get_metrics, get_metrics_content_type, set_app_info
from livecast.core.middleware import (
    CorrelationIdMiddleware,
    MetricsMiddleware,
    RequestLoggingMiddleware,
    TracingMiddleware,
)
from livecast.core.tracing import setup_tracing
from livecast.modules.stream.router import router as stream_router

ENVIRONMENT = "development" if settings.DEBUG else "production"

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="""
## Livecast API

Backend for a livestreaming platform: creators go live through the managed
video service, viewers discover and watch streams, and finished broadcasts
are matched to their recordings in object storage.

### Authentication

Creator, owner and admin endpoints require a JWT Bearer token.

```
Authorization: Bearer <access_token>
```
    """,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    openapi_tags=[
        {
            "name": "health",
            "description": "Health check and metrics endpoints",
        },
        {
            "name": "streams",
            "description": "Broadcast lifecycle, discovery, recordings and playback",
        },
    ],
)

setup_logging(level="DEBUG" if settings.DEBUG else "INFO")

setup_tracing(
    service_name=settings.PROJECT_NAME,
    service_version=settings.VERSION,
    environment=ENVIRONMENT,
    enable_console_export=settings.DEBUG,
)

set_app_info(version=settings.VERSION, environment=ENVIRONMENT)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(TracingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(MetricsMiddleware)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/metrics", tags=["health"], include_in_schema=False)
async def metrics() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


app.include_router(stream_router, prefix=settings.API_V1_PREFIX)
