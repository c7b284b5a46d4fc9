"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Build the TranscriptionService ONCE per process (immutable config only)
- Register routes
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppConfig
from observability import logger
from services.transcription_service import TranscriptionService

from server.routes import register_routes


def create_app(
    config: AppConfig | None = None,
    service: TranscriptionService | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Passing config/service allows tests to run without environment variables
    or network access.
    """
    if config is None:
        config = service.config if service is not None else AppConfig.load_from_env()

    logger.configure(config.log_level)

    app = FastAPI(title="Transcription API")

    app.state.config = config
    app.state.service = service or TranscriptionService(config)

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
