"""Splitting one batch response into per-entity segments."""

import re
from dataclasses import dataclass, field
from typing import Optional

from draftsmith.errors import PartialBatchExtraction


@dataclass
class BatchEntry:
    """Content generated for one requested entity."""

    entity_number: int
    raw_content: str
    label: str = ""


@dataclass
class BatchExtraction:
    """Entries found in a response, plus the requested numbers that were not."""

    entries: list[BatchEntry] = field(default_factory=list)
    requested: list[int] = field(default_factory=list)
    missing: list[int] = field(default_factory=list)

    @property
    def found_count(self) -> int:
        return len(self.entries)

    @property
    def requested_count(self) -> int:
        return len(self.requested)

    def by_number(self) -> dict[int, BatchEntry]:
        return {entry.entity_number: entry for entry in self.entries}

    def summary(self) -> str:
        return f"{self.found_count}/{self.requested_count}"

    def raise_if_partial(self) -> None:
        """Raise for callers that treat a partial batch as a failure."""
        if self.missing:
            raise PartialBatchExtraction(self.missing, self.requested_count)


class BatchResponseParser:
    """Finds ``## ENTITY <n>: <label>`` headers and slices the text between them."""

    def __init__(self, keyword: str = "ENTITY"):
        """Initialize parser.

        Args:
            keyword: Header keyword, e.g. ENTITY, CHARACTER or CHAPTER
        """
        self.keyword = keyword
        self._header = re.compile(
            rf"^##[ \t]+{re.escape(keyword)}[ \t]+(\d+)[ \t]*:[ \t]*(.*?)[ \t]*$",
            re.MULTILINE | re.IGNORECASE,
        )

    def extract(
        self, full_text: str, requested: list[tuple[int, str]]
    ) -> BatchExtraction:
        """Extract one entry per requested entity.

        Args:
            full_text: Complete generated text
            requested: Ordered (entity_number, label) pairs

        Returns:
            BatchExtraction in requested order
        """
        numbers = [number for number, _ in requested]
        wanted = set(numbers)

        # Only headers for requested numbers act as boundaries
        headers = [
            match for match in self._header.finditer(full_text)
            if int(match.group(1)) in wanted
        ]

        extraction = BatchExtraction(requested=numbers)
        for number in numbers:
            content, label = self._slice(full_text, headers, number)
            if content is None:
                extraction.missing.append(number)
                continue
            extraction.entries.append(
                BatchEntry(entity_number=number, raw_content=content, label=label)
            )

        return extraction

    def _slice(
        self, text: str, headers: list[re.Match], number: int
    ) -> tuple[Optional[str], str]:
        for i, match in enumerate(headers):
            if int(match.group(1)) != number:
                continue

            end = headers[i + 1].start() if i + 1 < len(headers) else len(text)
            content = text[match.end():end].strip()
            # First header for a number wins; an empty segment counts as absent
            return (content or None), match.group(2)

        return None, ""
