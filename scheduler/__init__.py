"""
Scheduler package for periodic manga update checks.

This package contains:
- Interval scheduler with a guarded manual trigger
- Chapter change detection
- Web push notifications for new chapters
- Source validation reports
"""

__version__ = "1.0.0"
