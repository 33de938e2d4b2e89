"""Configuration loading and management."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from draftsmith.constants import (
    DEFAULT_MAX_CONTEXT_TOKENS,
    DEFAULT_MAX_OUTPUT_TOKENS,
    DEFAULT_MAX_READ_MB,
    DEFAULT_MAX_WRITE_MB,
    DEFAULT_MODEL,
    DEFAULT_STREAM_TIMEOUT,
    INTERNAL_DIR,
)


@dataclass
class Config:
    """Draftsmith configuration.

    Loads from .env and optionally .draftsmith/config.json
    """

    # API Keys
    anthropic_api_key: Optional[str] = None

    # Model settings
    default_model: str = DEFAULT_MODEL
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS
    models_file: Optional[str] = None

    # Context and streaming
    max_context_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS
    stream_timeout: float = DEFAULT_STREAM_TIMEOUT

    # File limits
    max_read_mb: int = DEFAULT_MAX_READ_MB
    max_write_mb: int = DEFAULT_MAX_WRITE_MB

    # Per-skill overrides (from .draftsmith/config.json):
    # {"draft": {"model": "anthropic:claude-opus-4-1", "max_context_tokens": 60000}}
    skill_overrides: dict[str, dict] = field(default_factory=dict)

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> "Config":
        """Load configuration from environment and project-specific config.

        Args:
            project_root: Project root directory (for .draftsmith/config.json)

        Returns:
            Config instance
        """
        load_dotenv()

        config = cls(
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            default_model=os.getenv("DRAFTSMITH_DEFAULT_MODEL", DEFAULT_MODEL),
            max_output_tokens=int(os.getenv("DRAFTSMITH_MAX_OUTPUT_TOKENS", DEFAULT_MAX_OUTPUT_TOKENS)),
            models_file=os.getenv("DRAFTSMITH_MODELS_FILE"),
            max_context_tokens=int(os.getenv("DRAFTSMITH_MAX_CONTEXT_TOKENS", DEFAULT_MAX_CONTEXT_TOKENS)),
            stream_timeout=float(os.getenv("DRAFTSMITH_STREAM_TIMEOUT", DEFAULT_STREAM_TIMEOUT)),
            max_read_mb=int(os.getenv("DRAFTSMITH_MAX_READ_MB", DEFAULT_MAX_READ_MB)),
            max_write_mb=int(os.getenv("DRAFTSMITH_MAX_WRITE_MB", DEFAULT_MAX_WRITE_MB)),
        )

        if project_root:
            project_config_path = project_root / INTERNAL_DIR / "config.json"
            if project_config_path.exists():
                try:
                    with open(project_config_path) as f:
                        project_config = json.load(f)
                except (json.JSONDecodeError, IOError):
                    project_config = {}  # Ignore invalid config
                config._apply_project_config(project_config)

        return config

    def _apply_project_config(self, data: dict) -> None:
        if "default_model" in data:
            self.default_model = data["default_model"]
        if "max_context_tokens" in data:
            self.max_context_tokens = int(data["max_context_tokens"])
        if "stream_timeout" in data:
            self.stream_timeout = float(data["stream_timeout"])
        if isinstance(data.get("skill_overrides"), dict):
            self.skill_overrides = data["skill_overrides"]

    def effective_skill_overrides(self) -> dict[str, dict]:
        """Skill overrides with the global context budget applied as a fallback.

        A budget set in the environment or project config applies to every
        skill that has no budget override of its own.
        """
        overrides = {name: dict(values) for name, values in self.skill_overrides.items()}
        if self.max_context_tokens != DEFAULT_MAX_CONTEXT_TOKENS:
            from draftsmith.skills import BUILTIN_SKILLS

            for name in BUILTIN_SKILLS:
                overrides.setdefault(name, {}).setdefault("max_context_tokens", self.max_context_tokens)
        return overrides

    @property
    def stream_timeout_seconds(self) -> Optional[float]:
        return self.stream_timeout if self.stream_timeout > 0 else None

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        if not self.anthropic_api_key:
            errors.append("No API key found. Set ANTHROPIC_API_KEY")

        if self.max_context_tokens <= 0:
            errors.append("max_context_tokens must be positive")

        if self.max_output_tokens <= 0:
            errors.append("max_output_tokens must be positive")

        if self.max_read_mb <= 0:
            errors.append("max_read_mb must be positive")

        if self.max_write_mb <= 0:
            errors.append("max_write_mb must be positive")

        if self.models_file and not Path(self.models_file).exists():
            errors.append(f"Models file not found: {self.models_file}")

        for name, override in self.skill_overrides.items():
            budget = override.get("max_context_tokens")
            if budget is not None and int(budget) <= 0:
                errors.append(f"skill_overrides.{name}.max_context_tokens must be positive")

        return errors

    def to_dict(self) -> dict:
        """Convert config to dictionary (for logging/display)."""
        return {
            "default_model": self.default_model,
            "max_output_tokens": self.max_output_tokens,
            "max_context_tokens": self.max_context_tokens,
            "stream_timeout": self.stream_timeout,
            "max_read_mb": self.max_read_mb,
            "max_write_mb": self.max_write_mb,
            "models_file": self.models_file,
            "skill_overrides": self.skill_overrides,
            "has_anthropic_key": bool(self.anthropic_api_key),
        }
