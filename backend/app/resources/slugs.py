"""Slug helpers for product and catalog URLs."""
from __future__ import annotations

import re
import unicodedata
from typing import Optional
from urllib.parse import urlsplit

SLUG_RE = re.compile(r"[^a-z0-9]+")
MAX_SLUG_LENGTH = 80


def generate_slug(value: Optional[str], *, max_length: int = MAX_SLUG_LENGTH) -> str:
    """Lowercase ASCII slug; accents are folded (``"Café Olé"`` -> ``"cafe-ole"``)."""

    if not value:
        return ""
    folded = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    slug = SLUG_RE.sub("-", folded.strip().lower()).strip("-")
    return slug[:max_length].rstrip("-")


def extract_slug_from_url(value: str) -> str:
    """Return the last path segment of a product URL or bare path."""

    text = value.strip()
    if not text:
        return ""
    parts = urlsplit(text)
    path = parts.path if parts.scheme else re.split(r"[?#]", text, maxsplit=1)[0]
    segments = [segment for segment in path.split("/") if segment]
    return segments[-1] if segments else ""


__all__ = ["MAX_SLUG_LENGTH", "extract_slug_from_url", "generate_slug"]
