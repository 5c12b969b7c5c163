"""
Unit tests for chapter change detection.
"""

from scheduler.change_detector import ChangeDetector, diff, newest
from scraper.models import ScrapedChapter


def _chapters(*numbers):
    return [ScrapedChapter(number=n, url=f"https://s.example/{n}") for n in numbers]


class TestDiff:
    """Test cases for diff."""

    def test_only_unseen_numbers_are_new(self):
        new = diff({1.0, 2.0, 3.0}, _chapters(2, 3, 4))
        assert [c.number for c in new] == [4.0]

    def test_nothing_stored_everything_is_new(self):
        new = diff(set(), _chapters(3, 2, 1))
        assert [c.number for c in new] == [3.0, 2.0, 1.0]

    def test_integer_and_float_numbers_match(self):
        assert diff([10], _chapters(10.0)) == []

    def test_fractional_chapters(self):
        new = diff({10.0}, _chapters(10.5, 10))
        assert [c.number for c in new] == [10.5]

    def test_duplicates_in_scrape_reported_once(self):
        new = diff(set(), _chapters(5, 5, 4))
        assert [c.number for c in new] == [5.0, 4.0]

    def test_no_changes(self):
        assert diff({1.0, 2.0}, _chapters(1, 2)) == []


class TestNewest:
    """Test cases for newest."""

    def test_highest_number_wins(self):
        assert newest(_chapters(3, 7, 5)).number == 7.0

    def test_empty(self):
        assert newest([]) is None


class TestChangeDetector:
    def test_delegates(self):
        detector = ChangeDetector()
        assert [c.number for c in detector.diff({1.0}, _chapters(1, 2))] == [2.0]
        assert detector.newest(_chapters(1, 2)).number == 2.0
