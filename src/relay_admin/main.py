"""Main entry point for the relay admin service."""

import asyncio
import signal

from relay_admin import __version__
from relay_admin.config import get_settings
from relay_admin.logging import get_logger, setup_logging
from relay_admin.server import AdminServer, build_app


async def main() -> None:
    """Main application entry point."""
    setup_logging()
    log = get_logger("relay_admin.main")

    settings = get_settings()
    log.info(
        "starting_relay_admin",
        version=__version__,
        environment=settings.environment,
        project_dir=str(settings.project_path),
        repo=settings.github_repo,
    )

    server = AdminServer(build_app(settings), host=settings.host, port=settings.port)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await server.start()
    try:
        await stop.wait()
        log.info("shutdown_requested")
    finally:
        await server.stop()
        log.info("relay_admin_stopped")


def run() -> None:
    """Run the application."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
