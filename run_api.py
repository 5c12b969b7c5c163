#!/usr/bin/env python3
"""
Script to run the Manga Update Tracker API server.
"""

import uvicorn
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from api.config import config
from utilities.config import config as scraper_config
from utilities.logger import setup_logging


def main():
    """Run the API server."""
    setup_logging(
        log_level=scraper_config.log_level,
        log_format=scraper_config.log_format,
        log_file=scraper_config.log_file,
        debug=scraper_config.debug
    )

    print("🚀 Starting Manga Update Tracker API Server")
    print(f"📡 Host: {config.host}")
    print(f"🔌 Port: {config.port}")
    print(f"🌐 Debug: {config.debug}")
    print(f"⏰ In-process scheduler: {config.run_scheduler}")
    print(f"📚 Database: {scraper_config.mongodb_database}")
    print("=" * 50)

    uvicorn.run(
        "api.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    main()
