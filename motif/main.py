"""FastAPI entry point exposing a workflow over HTTP."""

import sys
from typing import Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .config import MotifSettings, get_settings
from .routers import workflows
from .workflows.engine import Workflow


def configure_logging(level: str) -> None:
    """Send loguru output to stderr at ``level``."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def create_app(
    settings: Optional[MotifSettings] = None, workflow: Optional[Workflow] = None
) -> FastAPI:
    """Create a FastAPI application serving ``workflow`` (attach later with set_workflow)."""

    resolved_settings = settings or get_settings()
    configure_logging(resolved_settings.log_level)

    app = FastAPI(title=resolved_settings.app_name)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=resolved_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(workflows.router, prefix=resolved_settings.api_prefix)
    workflows.set_workflow(workflow)

    @app.get("/health", tags=["health"])
    def health_check() -> Dict[str, object]:
        """Report service status and whether a workflow is attached."""

        return {
            "status": "ok",
            "service": resolved_settings.app_name,
            "workflow_attached": workflows.is_attached(),
        }

    @app.get("/ready", tags=["health"])
    def readiness_check() -> Dict[str, object]:
        """Ready once a workflow is attached and running."""

        running = workflows.is_attached() and workflows.get_workflow().is_running
        return {
            "status": "ready" if running else "idle",
            "service": resolved_settings.app_name,
            "workflow_running": running,
        }

    return app
