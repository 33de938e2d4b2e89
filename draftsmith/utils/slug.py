"""Filesystem-friendly names for generated documents."""

import re

_UNSAFE = re.compile(r"[^a-z0-9_.-]+")
_HYPHENS = re.compile(r"-{2,}")


def slugify(value: str, fallback: str = "item", max_length: int = 80) -> str:
    """Normalize a label into a lowercase slug.

    Args:
        value: Label to normalize (e.g. "Mara Voss")
        fallback: Slug used when nothing usable remains
        max_length: Maximum slug length

    Returns:
        Slug such as ``mara-voss``
    """
    slug = _UNSAFE.sub("-", (value or "").strip().lower())
    slug = _HYPHENS.sub("-", slug).strip("-.")
    if not slug:
        slug = fallback
    return slug[:max_length].rstrip("-")
