"""Text helpers shared by extraction and export."""

import re
import unicodedata

_HTML_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")


def clean_text(value: str) -> str:
    """Collapse whitespace runs (including non-breaking spaces) to one space"""
    return _WHITESPACE.sub(" ", value.replace("\xa0", " ")).strip()


def strip_html_tags(value: str) -> str:
    return _HTML_TAG.sub("", value).strip()


def generate_query_slug(query: str) -> str:
    """Generate a filesystem-safe slug from a search query.

    Accents are folded to ASCII so Portuguese queries keep their words.

    Args:
        query: Search query string.

    Returns:
        Filesystem-safe slug (lowercase alphanumeric + hyphens).
    """
    if not query:
        return "unknown-query"

    folded = unicodedata.normalize("NFKD", query)
    slug = folded.encode("ascii", "ignore").decode("ascii").lower()

    # Replace common operators with hyphens
    slug = re.sub(r"\s+(and|or|not)\s+", "-", slug)

    # Replace spaces with hyphens
    slug = re.sub(r"\s+", "-", slug)

    # Remove all non-alphanumeric characters except hyphens
    slug = re.sub(r"[^a-z0-9-]", "", slug)

    # Collapse multiple hyphens
    slug = re.sub(r"-+", "-", slug)
    slug = slug.strip("-")

    if len(slug) > 64:
        slug = slug[:64].rstrip("-")

    if not slug:
        return "unknown-query"

    return slug
