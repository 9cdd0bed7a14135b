"""
FastAPI app factory.

Responsibilities:
- Load and validate configuration (fail fast on missing keys)
- Configure logging
- Set up middleware
- Initialize shared resources (HTTP client)
- Register routes
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppConfig
from observability.logger import configure_logging, log_event
from server.routes import register_routes


def create_app(config: AppConfig | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with different configurations
    - Environment-specific setup
    - ASGI server compatibility

    Raises:
        ConfigError if a required API key is missing.
    """
    config = (config or AppConfig.load_from_env()).validate()
    configure_logging(enabled=config.enable_json_logs)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # One HTTP client per process, shared by every connection
        app.state.http_client = build_http_client(config)
        log_event({
            "event_type": "APP_STARTED",
            "env": config.env,
            "gemini_model": config.gemini_model,
        })
        try:
            yield
        finally:
            await app.state.http_client.aclose()

    app = FastAPI(title="Voice Helper API", lifespan=lifespan)

    app.state.config = config

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    register_routes(app)

    return app


def build_http_client(config: AppConfig) -> httpx.AsyncClient:
    """HTTP client for the speech and generation APIs."""
    timeout_s = max(config.stt_timeout_ms, config.llm_timeout_ms) / 1000.0
    return httpx.AsyncClient(timeout=httpx.Timeout(timeout_s))
