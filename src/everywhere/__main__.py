"""Entry point for the search server."""

import asyncio
import contextlib
import sys

import structlog
import uvicorn

from everywhere.app import create_app
from everywhere.config import Settings
from everywhere.lifecycle import GracefulShutdown
from everywhere.logging import configure_logging

logger = structlog.get_logger()


async def serve(settings: Settings) -> None:
    """Run uvicorn until a shutdown signal arrives.

    Args:
        settings: Server configuration.
    """
    app = create_app(settings)
    shutdown = GracefulShutdown(timeout=settings.shutdown_timeout)

    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level="warning",
        access_log=False,
        timeout_graceful_shutdown=int(settings.shutdown_timeout),
    )
    server = uvicorn.Server(config)
    shutdown.install(asyncio.get_running_loop())

    async def shutdown_server() -> None:
        """Wait for shutdown signal and stop server."""
        await shutdown.wait_for_trigger()
        server.should_exit = True

    async def run_server() -> None:
        """Serve until stopped, then release the shutdown waiter."""
        try:
            await server.serve()
        finally:
            shutdown.trigger()

    logger.info("server_starting", host=settings.host, port=settings.port)
    await asyncio.gather(
        run_server(),
        shutdown_server(),
        return_exceptions=True,
    )


def main() -> None:
    """Entry point for python -m everywhere."""
    settings = Settings()
    configure_logging(debug=settings.debug, json_logs=settings.log_json)

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(serve(settings))

    sys.exit(0)


if __name__ == "__main__":
    main()
