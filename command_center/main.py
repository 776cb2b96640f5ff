"""
Command Center background worker.

Initializes the database and runs the maintenance scheduler until
interrupted. The conversational pipeline itself is embedded by the host
application through ``build_orchestrator``.
"""

import asyncio
import logging
import signal
import sys

from config import settings
from .database import init_database, close_database
from .scheduler.jobs import get_scheduler_manager

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)


async def run() -> None:
    logger.info(f"Starting {settings.app_name} worker ({settings.environment})...")

    if not await init_database():
        logger.error("Database failed to initialize, worker not started")
        return
    logger.info("Database initialized")

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl+C still raises KeyboardInterrupt
            pass

    scheduler = get_scheduler_manager()
    scheduler.start()

    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down...")
        try:
            scheduler.stop()
        except Exception as e:
            logger.warning(f"Failed to stop scheduler during shutdown: {e}")
        await close_database()
        logger.info("Shutdown complete")


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
