"""
Structured chapter extraction with a generative language model.

This module provides:
- Prompt construction with per-kind truncation
- Validation of the model's JSON against the chapter-list contract
- Release-date normalisation against a caller-supplied "today" anchor
"""

import json
import math
import re
import time
from datetime import date, datetime, timedelta
from typing import Any, List, Optional, Tuple

import google.generativeai as genai
import structlog

from .errors import ExtractionError, MalformedResponse
from .models import ContentKind, ScrapedChapter, ScrapedManga, UNKNOWN_CHAPTER_NUMBER
from utilities.config import config

logger = structlog.get_logger(__name__)

DATE_PLACEHOLDER = "YYYY-MM-DD"

MONTHS = {
    # English
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
    # Spanish
    "ene": 1, "abr": 4, "ago": 8, "set": 9, "dic": 12,
}

_COUNT = r"(\d+|un|una|a|an|one)"
_DAYS_AGO = [
    re.compile(rf"hace\s+{_COUNT}\s+d[ií]as?"),
    re.compile(rf"{_COUNT}\s+days?\s+ago"),
]
_WEEKS_AGO = [
    re.compile(rf"hace\s+{_COUNT}\s+semanas?"),
    re.compile(rf"{_COUNT}\s+weeks?\s+ago"),
]
_SAME_DAY = [
    re.compile(rf"hace\s+{_COUNT}\s+(horas?|minutos?|segundos?)"),
    re.compile(rf"{_COUNT}\s+(hours?|minutes?|seconds?)\s+ago"),
    re.compile(r"^(hoy|today|just now)$"),
]
_YESTERDAY = re.compile(r"^(ayer|yesterday)$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_MONTH_FIRST = re.compile(r"^([a-zé]+)\.?\s+(\d{1,2})(?:,?\s+(\d{4}))?$")
_DAY_FIRST = re.compile(r"^(\d{1,2})\s+(?:de\s+)?([a-zé]+)\.?(?:,?\s+(?:de\s+)?(\d{4}))?$")
_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def _count(token: str) -> int:
    return int(token) if token.isdigit() else 1


def _month_number(name: str) -> Optional[int]:
    return MONTHS.get(name[:4]) or MONTHS.get(name[:3])


def normalize_release_date(value: Any, today: date) -> Optional[date]:
    """
    Normalise a model-supplied release date.

    Placeholders, empty values and unparseable strings become None.
    Relative expressions are resolved against ``today``.

    Args:
        value: Raw ``release_date`` value from the model
        today: Anchor date for relative expressions

    Returns:
        A date, or None when unknown
    """
    if not isinstance(value, str):
        return None

    text = value.strip().lower()
    if not text or text == DATE_PLACEHOLDER.lower() or text in ("null", "none", "n/a"):
        return None

    match = _ISO_DATE.match(text)
    if match:
        try:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            return None

    for pattern in _DAYS_AGO:
        match = pattern.search(text)
        if match:
            return today - timedelta(days=_count(match.group(1)))

    for pattern in _WEEKS_AGO:
        match = pattern.search(text)
        if match:
            return today - timedelta(weeks=_count(match.group(1)))

    if _YESTERDAY.match(text):
        return today - timedelta(days=1)

    for pattern in _SAME_DAY:
        if pattern.search(text):
            return today

    match = _SLASH_DATE.match(text)
    if match:
        try:
            return date(int(match.group(3)), int(match.group(2)), int(match.group(1)))
        except ValueError:
            return None

    for pattern, month_group, day_group in ((_MONTH_FIRST, 1, 2), (_DAY_FIRST, 2, 1)):
        match = pattern.match(text)
        if match:
            month = _month_number(match.group(month_group))
            if month is None:
                return None
            year = int(match.group(3)) if match.group(3) else today.year
            try:
                return date(year, month, int(match.group(day_group)))
            except ValueError:
                return None

    return None


def coerce_chapter_number(value: Any) -> float:
    """Return the chapter number as a float, or the -1 sentinel when unknown."""
    if isinstance(value, bool):
        return UNKNOWN_CHAPTER_NUMBER
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().replace(",", "."))
        except ValueError:
            return UNKNOWN_CHAPTER_NUMBER
    else:
        return UNKNOWN_CHAPTER_NUMBER

    if not math.isfinite(number):
        return UNKNOWN_CHAPTER_NUMBER
    return number


class ExtractionParser:
    """Builds the extraction request and validates the model's answer."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        html_char_limit: Optional[int] = None,
        markdown_char_limit: Optional[int] = None,
        timeout: Optional[float] = None,
        model=None,
    ):
        """
        Initialize the parser.

        Args:
            api_key: Language-model API key, defaults to config
            model_name: Model identifier, defaults to config
            html_char_limit: Character budget for HTML input
            markdown_char_limit: Character budget for markdown input
            timeout: Client-side bound on the model call in seconds
            model: Pre-built model object exposing ``generate_content_async``
        """
        self.api_key = api_key if api_key is not None else config.gemini_api_key
        self.model_name = model_name or config.gemini_model
        self.html_char_limit = html_char_limit or config.html_char_limit
        self.markdown_char_limit = markdown_char_limit or config.markdown_char_limit
        self.timeout = timeout if timeout is not None else config.extraction_timeout
        self._model = model
        self.logger = logger.bind(component="extraction_parser")

    @property
    def model(self):
        if self._model is None:
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(
                self.model_name,
                generation_config={"response_mime_type": "application/json"},
            )
        return self._model

    def char_limit(self, content_kind: ContentKind) -> int:
        if content_kind == ContentKind.HTML:
            return self.html_char_limit
        return self.markdown_char_limit

    def truncate(self, content: str, content_kind: ContentKind) -> str:
        """Cut content to the kind's character budget."""
        return content[: self.char_limit(content_kind)]

    def build_prompt(self, content: str, source_url: str, content_kind: ContentKind, today: date) -> str:
        """Build the extraction prompt around already-truncated content."""
        kind = ContentKind(content_kind).value
        return f"""
You are a manga scraper parser. Extract information from the provided {kind} content.

Return EXACTLY this JSON structure:
{{
  "title": "String",
  "cover_url": "String",
  "chapters": [
    {{
      "number": Number,
      "title": "String",
      "url": "String",
      "release_date": "YYYY-MM-DD"
    }}
  ]
}}

Rules:
- "number" MUST be a number (e.g. 10.5). If unknown, use -1.
- "url" MUST be absolute. Base URL: {source_url}
- Sort by number descending.
- Limit to latest 20 chapters.
- "release_date" MUST be in YYYY-MM-DD format. Today is {today.isoformat()}.
  - If you see "hace X días" or "X days ago", calculate the actual date.
  - If you see "ayer" or "yesterday", use yesterday's date.
  - If you see "hoy" or "today", use today's date.
  - If you see a date like "Dec 15" or "15 Dec", use the current year.
  - If you see "hace X horas" or "X hours ago", use today's date.
  - If no date is visible, leave release_date as null (not "YYYY-MM-DD").

Content ({kind}):
{content}
"""

    async def extract(
        self,
        content: str,
        source_url: str,
        content_kind: ContentKind,
        today: Optional[date] = None,
    ) -> ScrapedManga:
        """
        Extract title, cover and chapters from page content.

        Args:
            content: Raw HTML or sanitised markdown
            source_url: URL the content came from
            content_kind: Whether the content is HTML or markdown
            today: Anchor for relative dates, defaults to the current UTC date

        Returns:
            ScrapedManga; chapters are empty when the answer was malformed

        Raises:
            ExtractionError: If the model call itself fails
        """
        content_kind = ContentKind(content_kind)
        today = today or datetime.utcnow().date()
        truncated = self.truncate(content, content_kind)
        prompt = self.build_prompt(truncated, source_url, content_kind, today)

        start_time = time.monotonic()
        try:
            response = await self.model.generate_content_async(
                prompt,
                request_options={"timeout": self.timeout},
            )
        except Exception as e:
            raise ExtractionError(f"Language model call failed: {e}") from e

        try:
            text = response.text
        except ValueError:
            # No text part, e.g. the candidate was blocked
            text = ""

        result = self.parse_response(text, source_url, content_kind, today)
        self.logger.debug(
            "Extraction completed",
            url=source_url,
            content_kind=content_kind.value,
            input_length=len(truncated),
            title=result.title,
            chapter_count=len(result.chapters),
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )
        return result

    def parse_response(
        self,
        text: str,
        source_url: str,
        content_kind: ContentKind,
        today: date,
    ) -> ScrapedManga:
        """Validate the model's text answer. Never raises on bad structure."""
        data, problem = self._load_json(text)
        if data is None:
            return self._malformed(ScrapedManga(), problem, source_url, content_kind)

        result = ScrapedManga(
            title=self._as_text(data.get("title")),
            cover_url=self._as_text(data.get("cover_url")),
        )

        raw_chapters = data.get("chapters")
        if not isinstance(raw_chapters, list):
            return self._malformed(result, "chapters is missing or not a list", source_url, content_kind)

        chapters, skipped = self._parse_chapters(raw_chapters, today)
        result.chapters = chapters
        if skipped:
            self._malformed(result, f"{skipped} chapter entries are not objects", source_url, content_kind)
        return result

    def _load_json(self, text: str) -> Tuple[Optional[dict], str]:
        if not text or not text.strip():
            return None, "empty response"

        stripped = _CODE_FENCE.sub("", text.strip())
        try:
            data = json.loads(stripped)
        except json.JSONDecodeError as e:
            return None, f"response is not valid JSON: {e.msg}"

        if not isinstance(data, dict):
            return None, f"expected a JSON object, got {type(data).__name__}"
        return data, ""

    def _parse_chapters(self, raw_chapters: List[Any], today: date) -> Tuple[List[ScrapedChapter], int]:
        chapters = []
        skipped = 0
        for raw in raw_chapters:
            if not isinstance(raw, dict):
                skipped += 1
                continue
            chapters.append(
                ScrapedChapter(
                    number=coerce_chapter_number(raw.get("number")),
                    title=self._as_text(raw.get("title")),
                    url=self._as_text(raw.get("url")),
                    release_date=normalize_release_date(raw.get("release_date"), today),
                )
            )
        return chapters, skipped

    @staticmethod
    def _as_text(value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    def _malformed(
        self,
        result: ScrapedManga,
        problem: str,
        source_url: str,
        content_kind: ContentKind,
    ) -> ScrapedManga:
        warning = MalformedResponse(f"Malformed model response: {problem}")
        self.logger.warning(
            "Language model returned invalid structure",
            url=source_url,
            content_kind=content_kind.value,
            problem=problem,
        )
        result.warnings.append(str(warning))
        return result
