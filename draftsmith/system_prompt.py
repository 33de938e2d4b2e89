"""System prompt builder with Anthropic prompt caching support."""

import json
from pathlib import Path
from typing import Optional

from draftsmith.skills import SkillDefinition

DEFAULT_POV = "third person limited"
DEFAULT_TENSE = "past"


class SystemPromptBuilder:
    """Fills a skill's template from project files and attaches the context block."""

    def __init__(self, project_root: Path):
        """Initialize system prompt builder.

        Args:
            project_root: Project root directory
        """
        self.project_root = project_root

    def render_template(self, skill: SkillDefinition, book: Optional[str] = None) -> str:
        """Substitute the template variables for a skill.

        Genre, POV, tense and style notes come from ``books/<book>/book.json``;
        the foundation comes from the book's story foundation, or the project
        overview when no book is in scope.
        """
        settings = self._load_book_settings(book)

        genre = settings.get("genre") or ""
        genre_context = f"The story's genre is: {genre}" if genre else ""

        pov = settings.get("pov") or DEFAULT_POV
        tense = settings.get("tense") or DEFAULT_TENSE
        style_notes = settings.get("writing_style_notes") or ""
        style_block = f"POV: {pov}\nTense: {tense}\n{style_notes}"

        prompt = skill.template
        prompt = prompt.replace("{genre_context}", genre_context)
        prompt = prompt.replace("{existing_foundation_context}", self._foundation_context(book))
        prompt = prompt.replace("{writing_style_notes}", style_block)
        prompt = prompt.replace("{pov}", pov)
        prompt = prompt.replace("{tense}", tense)
        return prompt.strip()

    def build_system_messages(self, prompt: str, context_block: str = "") -> list[dict]:
        """Build system blocks with cache_control markers.

        The skill prompt and the project context are cached separately so a
        follow-up request with the same context reuses both.

        Returns:
            List of system message blocks
        """
        messages = [{
            "type": "text",
            "text": prompt,
            "cache_control": {"type": "ephemeral"},
        }]

        if context_block:
            messages.append({
                "type": "text",
                "text": f"# Project Context\n\n{context_block}",
                "cache_control": {"type": "ephemeral"},
            })

        return messages

    def _load_book_settings(self, book: Optional[str]) -> dict:
        if not book:
            return {}
        book_path = self.project_root / "books" / book / "book.json"
        try:
            with open(book_path) as f:
                meta = json.load(f)
        except (IOError, json.JSONDecodeError):
            return {}
        if not isinstance(meta, dict):
            return {}

        settings = dict(meta.get("settings") or {})
        settings["genre"] = meta.get("genre") or ""
        return settings

    def _foundation_context(self, book: Optional[str]) -> str:
        if book:
            path = self.project_root / "books" / book / "phase-1-seed" / "story-foundation.md"
            label = "Current story foundation"
        else:
            path = self.project_root / "overview" / "overview.md"
            label = "Project overview"

        try:
            return f"{label}:\n{path.read_text(encoding='utf-8')}"
        except (IOError, UnicodeDecodeError):
            return ""
