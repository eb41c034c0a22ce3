"""FastAPI application factory for the dashboard.

The application's lifespan owns the refresh pipeline: the scheduler starts
with the server (its first cycle runs immediately) and is stopped, along with
all subscriber streams and the inspection client's connection pool, when the
server shuts down.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from jlib_dashboard import __version__
from jlib_dashboard.config import Config
from jlib_dashboard.container import DashboardContainer, create_container
from jlib_dashboard.dashboard.routes import create_routes
from jlib_dashboard.logging import get_logger

logger = get_logger(__name__)


def create_app(
    config: Config | None = None,
    *,
    container: DashboardContainer | None = None,
    static_dir: Path | None = None,
) -> FastAPI:
    """Create and configure the FastAPI dashboard application.

    Args:
        config: Application configuration. Ignored when ``container`` is
            given. Defaults to ``Config()``.
        container: Optional prebuilt container, e.g. one whose inspection
            client talks to a simulated server.
        static_dir: Optional directory holding the built front end, served
            at ``/``. Defaults to ``config.static_dir``.

    Returns:
        A configured FastAPI application.
    """
    if container is None:
        container = create_container(config)
    config = container.config()
    if static_dir is None:
        static_dir = config.static_dir

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        scheduler = container.scheduler()
        scheduler.start()
        logger.info("Polling inspection server at %s", container.inspection_client().base_url)
        try:
            yield
        finally:
            await scheduler.stop()
            container.broadcast_hub().close_all()
            await container.inspection_client().aclose()

    app = FastAPI(
        title="JLib Dashboard",
        description="Monitoring dashboard for Java applications and their JAR dependencies",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.container = container

    app.include_router(create_routes(container))

    # Mounted after the API routes so they take precedence
    if static_dir is not None:
        if static_dir.is_dir():
            app.mount("/", StaticFiles(directory=str(static_dir), html=True), name="static")
        else:
            logger.warning("Static directory %s does not exist, not serving a front end", static_dir)

    return app
