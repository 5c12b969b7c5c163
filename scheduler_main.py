"""
Main entry point for the update scheduler.

Runs as a daemon checking every tracked manga on a fixed interval, or
performs a single pass with --once.
"""

import asyncio
import signal
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

import structlog
from utilities.logger import setup_logging
from utilities.config import config
from scheduler.container import ServiceContainer


async def run_daemon(services: ServiceContainer) -> None:
    """Start the scheduler and wait for a shutdown signal."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    services.scheduler_service.start()
    await stop_event.wait()


async def main():
    """Main function to start the scheduler service."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug
    )
    logger = structlog.get_logger(__name__)

    run_once = False
    if len(sys.argv) > 1:
        if sys.argv[1] == '--once':
            run_once = True
        elif sys.argv[1] != '--daemon':
            print(f"Unknown argument: {sys.argv[1]}")
            print("Usage: python scheduler_main.py [--once|--daemon]")
            sys.exit(1)

    services = ServiceContainer()

    try:
        config.require_provider_credentials()
        await services.connect()

        if run_once:
            logger.info("Running in RUN ONCE MODE - Single execution")
            result = await services.scheduler_service.run_once(trigger="manual")
            print("\n" + "=" * 60)
            print(f"Checked: {result.checked}  Updated: {result.updated}  "
                  f"Skipped: {result.skipped}  Failed: {result.failed}  "
                  f"Total: {result.total}")
            for item in result.updated_items:
                print(f"  + {item.title}: {item.new_chapters_count} new chapters")
            print(f"Duration: {result.duration_ms}ms")
            print("=" * 60)
        else:
            logger.info(
                "Running in DAEMON MODE",
                interval_hours=config.check_interval_hours,
                timezone=config.timezone
            )
            await run_daemon(services)

    except Exception as e:
        logger.error("Failed to start scheduler service", error=str(e))
        sys.exit(1)

    finally:
        await services.close()


if __name__ == "__main__":
    asyncio.run(main())
