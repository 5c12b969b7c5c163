"""
Scraper package: adaptive chapter-list extraction.

This package contains:
- Direct and provider-backed fetchers
- Markdown sanitising
- Language-model extraction and validation
- Per-domain strategy caching
- The scrape orchestrator with its fallback chain
- MongoDB repositories for tracked items and chapters
"""

__version__ = "1.0.0"
