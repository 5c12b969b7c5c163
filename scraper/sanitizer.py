"""
Markdown clean-up applied before content is sent to the extraction model.
"""

import re

IMAGE_PLACEHOLDER = "[IMAGE_REMOVED]"
MULTIPLE_IMAGES_PLACEHOLDER = "[MULTIPLE_IMAGES_REMOVED]"

_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_BASE64_IMAGE = re.compile(r"!\[[^\]]*?\]\(data:image/[^)]*?\)")
_IMAGE_RUN = re.compile(r"(?:!\[[^\]]*?\]\([^)]*?\)\s*){3,}")


def clean_markdown(markdown: str) -> str:
    """
    Strip noise from provider markdown.

    Collapses 3+ newlines to 2, replaces inline base64 images with a
    placeholder and collapses runs of 3+ image links into one placeholder.

    Args:
        markdown: Raw markdown returned by the scrape provider

    Returns:
        Cleaned markdown
    """
    if not markdown:
        return ""

    cleaned = _EXCESS_NEWLINES.sub("\n\n", markdown)
    cleaned = _BASE64_IMAGE.sub(IMAGE_PLACEHOLDER, cleaned)
    cleaned = _IMAGE_RUN.sub(f"\n{MULTIPLE_IMAGES_PLACEHOLDER}\n", cleaned)
    return cleaned
