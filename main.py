"""
Command line entry point for the Manga Update Tracker.
Scrapes, validates, searches or tracks a single manga without the API.
"""

import asyncio
import json
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from scheduler.container import ServiceContainer
from utilities.config import config
from utilities.logger import setup_logging, get_logger

USAGE = """Usage: python main.py [scrape|validate|search|track] <url|query> [user_id]

Commands:
  scrape    - Scrape a manga page and print the extracted chapters
  validate  - Run a diagnostic scrape and print the validation report
  search    - Search the scrape provider for a title
  track     - Scrape a page and store it, optionally for a user

Examples:
  python main.py scrape 'https://example.com/manga/solo-leveling'
  python main.py validate 'https://example.com/manga/solo-leveling'
  python main.py search 'solo leveling'
  python main.py track 'https://example.com/manga/solo-leveling' user-123"""


async def run_command(services: ServiceContainer, command: str, argument: str, user_id: str = None) -> int:
    """Run one command and return the process exit code."""
    if command == "scrape":
        result = await services.orchestrator.scrape(argument)
        print(json.dumps(result.dict(), indent=2, default=str, ensure_ascii=False))
        return 0

    if command == "validate":
        report = await services.validator.validate(argument)
        for line in report.report:
            print(line)
        print(f"\nValid: {report.is_valid}")
        return 0 if report.is_valid else 2

    if command == "search":
        results = await services.provider_fetcher.search(argument)
        if not results:
            print("No results found")
        for result in results:
            print(f"- {result.title}\n  {result.url}")
        return 0

    if command == "track":
        item = await services.tracking.track(argument, user_id)
        print(f"Tracking '{item.title}' ({item.id})")
        return 0

    print(f"Unknown command: {command}")
    print("Available commands: scrape, validate, search, track")
    return 1


async def main():
    """Main function."""
    if len(sys.argv) < 3:
        print(USAGE)
        sys.exit(1)

    command = sys.argv[1].lower()
    argument = sys.argv[2]
    user_id = sys.argv[3] if len(sys.argv) > 3 else None

    # Set up logging
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )

    logger = get_logger(__name__)
    services = ServiceContainer()
    exit_code = 0

    try:
        # Search never touches the database
        if command != "search":
            await services.connect()
        exit_code = await run_command(services, command, argument, user_id)

    except Exception as e:
        logger.error("Command failed", command=command, error=str(e))
        exit_code = 1

    finally:
        await services.db_manager.disconnect()

    sys.exit(exit_code)


if __name__ == "__main__":
    # Run the async main function
    asyncio.run(main())
