"""FastAPI application and server entry point for Doko Runtime."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from doko_runtime import __version__
from doko_runtime.api.health import router as health_router
from doko_runtime.api.middleware import install_error_handlers, install_request_tracking
from doko_runtime.api.programs import router as programs_router
from doko_runtime.core.config import Settings
from doko_runtime.core.exceptions import ConfigurationError
from doko_runtime.core.project_config import ProjectConfig, load_project_config
from doko_runtime.utils.fs import find_root_directory
from doko_runtime.utils.logging import setup_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting Doko Runtime", version=__version__)

    if app.state.project_config is None and app.state.project_root is not None:
        config_path = app.state.project_root / app.state.settings.config_file
        try:
            app.state.project_config = load_project_config(config_path)
            logger.info("Project config loaded", path=str(config_path))
        except ConfigurationError as e:
            logger.error("Failed to load project config", path=str(config_path), error=str(e))

    yield

    logger.info("Shutting down Doko Runtime")


def create_app(
    settings: Optional[Settings] = None,
    project_config: Optional[ProjectConfig] = None,
    project_root: Optional[Path] = None,
) -> FastAPI:
    """Create FastAPI application."""
    if settings is None:
        settings = Settings()

    setup_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Doko Runtime",
        version=__version__,
        description="Deploy and invoke Aleo programs through snarkos and leo",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.project_config = project_config
    app.state.project_root = project_root or find_root_directory(Path.cwd())

    install_error_handlers(app)
    install_request_tracking(app)

    app.include_router(health_router, tags=["runtime"])
    app.include_router(programs_router, tags=["programs"])

    if settings.metrics_enabled:
        app.mount("/metrics", make_asgi_app())

    return app


def run(settings: Optional[Settings] = None) -> None:
    """Serve the API with uvicorn."""
    settings = settings or Settings()

    config = uvicorn.Config(
        "doko_runtime.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_config=None,  # We handle logging ourselves
        access_log=False,  # Handled by middleware
    )

    server = uvicorn.Server(config)
    server.run()


if __name__ == "__main__":
    run()
