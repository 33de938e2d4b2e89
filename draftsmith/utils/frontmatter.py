"""YAML frontmatter parsing and serialization for markdown documents."""

from typing import Any

import yaml

DELIMITER = "---"


def parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Split a document into (frontmatter, body).

    Documents without a valid frontmatter block are returned whole as body.

    Args:
        content: Full document text

    Returns:
        Tuple of (frontmatter dict, body)
    """
    content = content.replace("\r\n", "\n")
    if not content.startswith(DELIMITER + "\n"):
        return {}, content

    rest = content[len(DELIMITER) + 1:]
    if rest == DELIMITER or rest.startswith(DELIMITER + "\n"):
        return {}, rest[len(DELIMITER):].lstrip("\n")

    end = rest.find("\n" + DELIMITER)
    if end == -1:
        # Frontmatter opened but never closed
        return {}, content

    try:
        data = yaml.safe_load(rest[:end]) or {}
    except yaml.YAMLError:
        return {}, content

    if not isinstance(data, dict):
        return {}, content

    body = rest[end + len(DELIMITER) + 1:].lstrip("\n")
    return data, body


def serialize_frontmatter(frontmatter: dict[str, Any], body: str) -> str:
    """Join frontmatter and body; empty frontmatter yields the body alone."""
    if not frontmatter:
        return body

    yaml_str = yaml.safe_dump(frontmatter, sort_keys=False, allow_unicode=True)
    return f"{DELIMITER}\n{yaml_str}{DELIMITER}\n\n{body}"
