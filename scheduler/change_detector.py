"""
Change detection for chapter lists.

A chapter is new when its number has never been stored for the item.
Edits to an already-seen chapter are not reported.
"""

from typing import Iterable, List, Optional

from scraper.models import ScrapedChapter


def diff(existing_numbers: Iterable[float], scraped: Iterable[ScrapedChapter]) -> List[ScrapedChapter]:
    """
    Return scraped chapters whose number is not in ``existing_numbers``.

    Scrape order is preserved. A number repeated within ``scraped`` is
    reported once.
    """
    seen = {float(n) for n in existing_numbers}
    new_chapters = []
    for chapter in scraped:
        number = float(chapter.number)
        if number in seen:
            continue
        seen.add(number)
        new_chapters.append(chapter)
    return new_chapters


def newest(chapters: Iterable[ScrapedChapter]) -> Optional[ScrapedChapter]:
    """Chapter with the highest number, None for an empty list."""
    return max(chapters, key=lambda c: c.number, default=None)


class ChangeDetector:
    """Thin object wrapper so the detector can be injected and mocked."""

    def diff(self, existing_numbers: Iterable[float], scraped: Iterable[ScrapedChapter]) -> List[ScrapedChapter]:
        return diff(existing_numbers, scraped)

    def newest(self, chapters: Iterable[ScrapedChapter]) -> Optional[ScrapedChapter]:
        return newest(chapters)
