"""FastAPI application exposing Countly tools over MCP (JSON-RPC)."""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Mapping, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from countly_mcp.api.routers import health, mcp
from countly_mcp.infra.config import SERVER_NAME, SERVER_VERSION, Settings, load_settings
from countly_mcp.infra.logging import setup_logging
from countly_mcp.infra.middleware import RequestIDMiddleware, RequestLoggingMiddleware, setup_cors
from countly_mcp.services.app_cache import AppCache
from countly_mcp.services.pipeline import ToolCallPipeline
from countly_mcp.services.plugin_directory import PluginDirectory
from countly_mcp.services.tenant_scope import TenantCaches
from countly_mcp.services.tool_policy import get_config_summary, load_tools_config
from countly_mcp.services.tool_registry import ToolRegistry
from countly_mcp.tools import ToolServices, get_all_tool_metadata

logger = logging.getLogger("countly_mcp")

MAX_REQUEST_SIZE = 1024 * 1024  # 1MB


def build_pipeline(
    settings: Settings,
    env: Optional[Mapping[str, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ToolCallPipeline:
    """Wire caches, registry and permission config into one pipeline."""
    tools_config = load_tools_config(settings)
    services = ToolServices(
        app_caches=TenantCaches(
            lambda: AppCache(ttl_seconds=settings.app_cache_ttl), settings.max_tenants
        ),
        plugin_caches=TenantCaches(
            lambda: PluginDirectory(ttl_seconds=settings.plugin_cache_ttl), settings.max_tenants
        ),
    )
    registry = ToolRegistry(get_all_tool_metadata(), services)
    return ToolCallPipeline(settings, tools_config, registry, services, env=env, transport=transport)


def create_app(
    settings: Optional[Settings] = None,
    env: Optional[Mapping[str, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Process configuration (loaded from the environment if None)
        env: Environment used for credential fallback (defaults to os.environ)
        transport: Optional httpx transport for outbound calls (tests)

    Returns:
        Configured FastAPI app
    """
    if settings is None:
        settings = load_settings(env)
    pipeline = build_pipeline(settings, env=env, transport=transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup and shutdown."""
        setup_logging(settings.debug)
        logger.info(
            "Application starting up",
            extra={"app_env": settings.app_env, "server_url": settings.server_url or None},
        )
        logger.info(get_config_summary(pipeline.tools_config))

        yield

        logger.info("Application shutting down")

    app = FastAPI(
        title="Countly MCP Server",
        description="Model Context Protocol server for the Countly analytics API.",
        version=SERVER_VERSION,
        lifespan=lifespan,
        tags_metadata=[
            {"name": "MCP", "description": "JSON-RPC endpoint for MCP clients"},
            {"name": "Health", "description": "Health check and monitoring endpoints"},
        ],
    )
    app.state.settings = settings
    app.state.pipeline = pipeline

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    setup_cors(app, settings)

    @app.middleware("http")
    async def request_size_limit_middleware(request: Request, call_next):
        """Enforce request size limits."""
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > MAX_REQUEST_SIZE:
            return JSONResponse(
                status_code=413,
                content={"detail": f"Request too large. Maximum size: {MAX_REQUEST_SIZE} bytes"},
            )
        return await call_next(request)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle all other exceptions."""
        error_id = str(uuid.uuid4())
        logger.error(f"Unhandled exception: {exc}", exc_info=True, extra={"error_id": error_id})
        return JSONResponse(
            status_code=500,
            content={"detail": f"Internal server error. Error ID: {error_id}"},
        )

    app.include_router(mcp.router)
    app.include_router(health.router)

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = load_settings()
    setup_logging(settings.debug)
    logger.info("Starting server", extra={"service": SERVER_NAME, "host": settings.host, "port": settings.port})
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        timeout_keep_alive=30,
        timeout_graceful_shutdown=30,
    )


if __name__ == "__main__":
    run()
