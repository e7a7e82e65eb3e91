#!/usr/bin/env python3
"""
Application factory for the Generate Proxy.
Proxies generate requests to the OpenAI chat-completion API, keeping the API key server-side.
"""

from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI

from generate_proxy.shared.config import Settings, load_config, setup_logging
from generate_proxy.shared.middleware import RequestTracingMiddleware
from generate_proxy.features.generate.endpoints import router as generate_router
from generate_proxy.features.health_check.endpoints import router as health_check_router
from generate_proxy.features.metrics.endpoints import router as metrics_router

# Path existing browser clients of the serverless deployment already call
NETLIFY_FUNCTIONS_PREFIX = "/.netlify/functions"


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Builds the ASGI application.

    ``transport`` replaces the network transport of the shared HTTP client,
    which lets tests stand in for the upstream API.
    """
    settings = settings or load_config()
    logger = setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan resources."""
        # The per-request timeout in OpenAIClient is the effective bound
        app.state.http_client = httpx.AsyncClient(
            timeout=settings.openai.timeout + 5.0,
            transport=transport,
        )
        if not settings.has_api_key:
            logger.warning("OPENAI_API_KEY is not set; generate requests will fail with 500")
        logger.info("Application startup complete")
        yield
        await app.state.http_client.aclose()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Generate Proxy",
        description="Proxies content generation requests to the OpenAI chat-completion API",
        version=settings.function_version,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.include_router(generate_router, prefix="/api/v1", tags=["Proxy"])
    app.include_router(generate_router, prefix=NETLIFY_FUNCTIONS_PREFIX, include_in_schema=False)
    app.include_router(health_check_router)
    app.include_router(metrics_router)

    app.add_middleware(RequestTracingMiddleware)
    return app
