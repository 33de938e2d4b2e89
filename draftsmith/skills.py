"""Generation skills: which documents a request reads and how it is prompted."""

from dataclasses import dataclass, field, replace
from typing import Optional

from draftsmith.constants import DEFAULT_MAX_CONTEXT_TOKENS


@dataclass(frozen=True)
class SkillDefinition:
    """A named generation profile.

    Include patterns are globs relative to the project root and may use the
    ``{book}``, ``{chapter}``, ``{scene}`` and ``{character}`` placeholders.
    Patterns whose placeholders the scope does not fill are skipped. Pattern
    order is context priority order.
    """

    name: str
    display_name: str
    description: str
    default_model: str
    temperature: float
    template: str
    always_include: list[str] = field(default_factory=list)
    when_book: list[str] = field(default_factory=list)
    include_if_exists: list[str] = field(default_factory=list)
    max_context_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS

    def include_patterns(self, has_book: bool) -> list[str]:
        patterns = list(self.always_include)
        if has_book:
            patterns.extend(self.when_book)
        patterns.extend(self.include_if_exists)
        return patterns


_STYLE_BLOCK = """
{genre_context}

{existing_foundation_context}

Writing style:
{writing_style_notes}
"""

BUILTIN_SKILLS = {
    "brainstorm": SkillDefinition(
        name="brainstorm",
        display_name="Brainstorm",
        description="Creative brainstorming for ideas, premises and directions",
        default_model="anthropic:claude-sonnet-4-5",
        temperature=0.9,
        template=(
            "You are a creative writing assistant. Help the author brainstorm ideas. "
            "Offer several distinct options and say briefly why each could work."
            + _STYLE_BLOCK
        ),
        always_include=["overview/*.md"],
        when_book=["books/{book}/phase-1-seed/*.md"],
        include_if_exists=["notes/*.md"],
        max_context_tokens=20000,
    ),
    "draft": SkillDefinition(
        name="draft",
        display_name="Draft Prose",
        description="Write scene prose from the outline and story context",
        default_model="anthropic:claude-sonnet-4-5",
        temperature=0.8,
        template=(
            "You are a fiction writer drafting a scene. Write in {pov}, {tense} tense. "
            "Return only the prose of the scene, without commentary."
            + _STYLE_BLOCK
        ),
        always_include=["overview/*.md"],
        when_book=[
            "books/{book}/phase-1-seed/*.md",
            "books/{book}/chapters/{chapter}/outline.md",
            "books/{book}/chapters/{chapter}/{scene}/*.md",
            "characters/*.md",
        ],
        include_if_exists=["world/*.md"],
        max_context_tokens=40000,
    ),
    "outline": SkillDefinition(
        name="outline",
        display_name="Outline",
        description="Produce chapter and beat outlines",
        default_model="anthropic:claude-sonnet-4-5",
        temperature=0.7,
        template=(
            "You are a story structure editor. Produce clear, numbered outlines. "
            "When asked for several chapters, start each one with a header of the form "
            "'## CHAPTER <n>: <title>'."
            + _STYLE_BLOCK
        ),
        always_include=["overview/*.md"],
        when_book=[
            "books/{book}/phase-1-seed/*.md",
            "books/{book}/phase-2-root/*.md",
            "characters/*.md",
        ],
        max_context_tokens=30000,
    ),
    "characters": SkillDefinition(
        name="characters",
        display_name="Characters",
        description="Develop character profiles, singly or in batches",
        default_model="anthropic:claude-sonnet-4-5",
        temperature=0.8,
        template=(
            "You are a character development assistant. When asked for several "
            "characters, start each profile with a header of the form "
            "'## CHARACTER <n>: <name>'."
            + _STYLE_BLOCK
        ),
        always_include=["overview/*.md"],
        when_book=["books/{book}/phase-1-seed/*.md"],
        include_if_exists=["characters/{character}.md", "characters/*.md", "world/*.md"],
        max_context_tokens=20000,
    ),
    "quick_edit": SkillDefinition(
        name="quick_edit",
        display_name="Quick Edit",
        description="Small inline rewrites of selected text",
        default_model="anthropic:claude-haiku-4-5",
        temperature=0.7,
        template=(
            "You are an editor making a small, focused change to a passage. "
            "Return only the revised text. Keep {pov} and {tense} tense."
        ),
        when_book=[
            "books/{book}/phase-1-seed/story-foundation.md",
            "books/{book}/chapters/{chapter}/{scene}/draft.md",
        ],
        max_context_tokens=4000,
    ),
}

DEFAULT_SKILL = "brainstorm"


def get_skill(name: Optional[str]) -> SkillDefinition:
    """Look up a skill, falling back to brainstorming for empty names.

    Raises:
        ValueError: If a non-empty name is unknown
    """
    if not name:
        return BUILTIN_SKILLS[DEFAULT_SKILL]
    if name not in BUILTIN_SKILLS:
        raise ValueError(
            f"Unknown skill: {name}. Available: {', '.join(sorted(BUILTIN_SKILLS))}"
        )
    return BUILTIN_SKILLS[name]


def resolve_skill(
    name: Optional[str],
    skill_overrides: Optional[dict[str, dict]] = None,
    default_model: Optional[str] = None,
) -> SkillDefinition:
    """Apply per-skill overrides.

    Model resolves override -> configured default -> skill default; an
    override of ``"auto"`` defers to the configured default. The context
    budget resolves override -> skill default.
    """
    skill = get_skill(name)
    override = (skill_overrides or {}).get(skill.name, {})

    model = override.get("model")
    if not model or model == "auto":
        model = default_model or skill.default_model

    max_tokens = override.get("max_context_tokens") or skill.max_context_tokens

    return replace(skill, default_model=model, max_context_tokens=int(max_tokens))


def list_skills() -> list[SkillDefinition]:
    return [BUILTIN_SKILLS[name] for name in sorted(BUILTIN_SKILLS)]
