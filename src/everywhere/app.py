"""FastAPI application factory and lifespan management."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI

from everywhere import __version__
from everywhere.config import Settings
from everywhere.core.exclusions import ExclusionFilter
from everywhere.core.service import SearchService
from everywhere.events import EventBus, FilesystemWatcher
from everywhere.events.watcher import PathFilter
from everywhere.host import LocalWorkspace, Workspace
from everywhere.middleware.auth import APIKeyMiddleware
from everywhere.middleware.cors import configure_cors
from everywhere.middleware.logging import RequestLoggingMiddleware
from everywhere.routes import admin, events, health, items, search

logger = structlog.get_logger()


def register_builtin_commands(workspace: LocalWorkspace, service: SearchService) -> None:
    """Expose index maintenance as host actions.

    Args:
        workspace: Local host whose registry receives the actions.
        service: Service the actions operate on.
    """

    async def rebuild_index() -> None:
        await service.refresh_index(force=True)

    workspace.register_command("rebuildIndex", rebuild_index)
    workspace.register_command("clearRecentActivity", service.clear_activity)


def watcher_filter(service: SearchService) -> PathFilter:
    """Ignore predicate that follows the service's current exclusions.

    Args:
        service: Service whose exclusion filter may be replaced at runtime.

    Returns:
        Predicate for paths that must not produce change notifications.
    """

    def ignore(path: Path) -> bool:
        return service.exclusions.should_exclude(path)

    return ignore


def _start_watcher(
    settings: Settings,
    service: SearchService,
    event_bus: EventBus,
) -> FilesystemWatcher | None:
    roots = [root for root in service.workspace.roots if root.is_dir()]
    if not settings.watch_enabled or not roots:
        return None

    watcher = FilesystemWatcher(
        paths=roots,
        loop=asyncio.get_running_loop(),
        event_bus=event_bus,
        debounce_ms=settings.event_debounce_ms,
        ignore=watcher_filter(service),
    )
    try:
        watcher.start()
    except (OSError, ValueError) as e:
        logger.warning("filesystem_watcher_failed", error=str(e))
        return None
    return watcher


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle events.

    Builds the event bus, the workspace host and the search service,
    indexes the workspace and starts the filesystem watcher on startup.
    Ensures clean shutdown of all subsystems.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings: Settings = app.state.settings
    logger.info("api_startup", host=settings.host, port=settings.port)

    event_bus = EventBus(
        queue_size=settings.event_queue_size,
        max_subscribers=settings.event_max_subscribers,
    )

    workspace: Workspace | None = app.state.workspace
    if workspace is None:
        roots = [Path(root) for root in settings.workspace_roots]
        workspace = LocalWorkspace(
            roots,
            event_bus=event_bus,
            exclusions=ExclusionFilter(settings.exclusions, roots),
        )

    service = SearchService(settings, workspace, event_bus)
    if isinstance(workspace, LocalWorkspace):
        register_builtin_commands(workspace, service)

    app.state.event_bus = event_bus
    app.state.search_service = service

    await service.start()
    await service.refresh_index()
    logger.info("search_index_ready", items=len(service.items))

    watcher = _start_watcher(settings, service, event_bus)
    if watcher is not None:
        logger.info("filesystem_watcher_started", paths=watcher.paths)

    try:
        yield
    finally:
        if watcher is not None:
            watcher.stop()
            logger.info("filesystem_watcher_stopped")

        await service.close()
        logger.info("api_shutdown")


def create_app(settings: Settings | None = None, workspace: Workspace | None = None) -> FastAPI:
    """Factory function to create configured FastAPI application.

    Args:
        settings: Configuration instance. Creates default if None.
        workspace: Host to index. A local-disk host over the configured
            roots is created if None.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="Search Everywhere API",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/v1/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/api/v1/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.workspace = workspace

    configure_cors(app, settings.cors_origins)
    app.add_middleware(RequestLoggingMiddleware)
    if settings.key:
        app.add_middleware(APIKeyMiddleware, api_key=settings.key)

    app.include_router(health.router, prefix="/api/v1")
    app.include_router(search.router, prefix="/api/v1")
    app.include_router(items.router, prefix="/api/v1")
    app.include_router(events.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
