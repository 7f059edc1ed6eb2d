"""
FastAPI application factory.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shopforge import __version__
from shopforge.core.errors import PublishError
from shopforge.publish.config import (
    ProviderConfig,
    PublishConfig,
    load_provider_config,
    load_publish_config,
)
from shopforge.publish.provider import VercelProvider
from shopforge.publish.publisher import Publisher
from shopforge.stores import InMemoryStoreRepository, StoreRepository

from .routes import create_publish_routes, envelope

logger = logging.getLogger(__name__)


def create_app(
    repository: StoreRepository | None = None,
    publisher: Publisher | None = None,
    *,
    provider_config: ProviderConfig | None = None,
    publish_config: PublishConfig | None = None,
    auth_dep: Any | None = None,
    debug: bool = False,
) -> FastAPI:
    """
    Create the HTTP application.

    Args:
        repository: Store persistence (default: in-memory)
        publisher: Publish pipeline (default: Vercel provider from environment)
        provider_config: Used when building the default publisher
        publish_config: Used when building the default publisher
        auth_dep: Owner identity dependency passed to the routes
        debug: Include internal error messages in error responses
    """
    repository = repository or InMemoryStoreRepository()
    owned_provider: VercelProvider | None = None
    if publisher is None:
        provider_config = provider_config or load_provider_config()
        publish_config = publish_config or load_publish_config(Path("shopforge.toml"))
        owned_provider = VercelProvider(provider_config)
        publisher = Publisher(owned_provider, provider_config, publish_config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        if owned_provider is not None:
            await owned_provider.aclose()

    app = FastAPI(title="shopforge", version=__version__, lifespan=lifespan)
    app.state.repository = repository
    app.state.publisher = publisher

    @app.exception_handler(PublishError)
    async def publish_error_handler(request: Request, exc: PublishError) -> JSONResponse:
        if exc.http_status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        body = envelope(exc.public_message, success=False)
        body["error"] = exc.to_dict(include_detail=debug)
        return JSONResponse(status_code=exc.http_status, content=body)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=envelope(str(exc.detail), success=False),
            headers=getattr(exc, "headers", None),
        )

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok", "version": __version__}

    app.include_router(create_publish_routes(repository, publisher, auth_dep=auth_dep))
    return app
