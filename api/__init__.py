"""
FastAPI RESTful API for the Manga Update Tracker.

This module provides a thin REST surface for:
- Scraping and searching manga pages
- Tracking manga for a user
- Push subscription registration
- Source validation and update triggers
"""
