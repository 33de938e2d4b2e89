"""Constants and default values for Draftsmith."""

# Default model configuration
DEFAULT_MODEL = "anthropic:claude-sonnet-4-5"
DEFAULT_MAX_OUTPUT_TOKENS = 8192

# Context budget used when a skill does not set one
DEFAULT_MAX_CONTEXT_TOKENS = 20000

# Seconds to wait for a terminal stream event (0 disables the timeout)
DEFAULT_STREAM_TIMEOUT = 600

# File size limits (in MB)
DEFAULT_MAX_READ_MB = 8
DEFAULT_MAX_WRITE_MB = 2

# Pricing switches to the long-context tier above this many total tokens
LONG_CONTEXT_THRESHOLD = 200_000

# Unconfirmed plans kept per pipeline; older ones are evicted
MAX_PENDING_PLANS = 20

# Project-level files and directories
INTERNAL_DIR = ".draftsmith"
CONTEXT_SETTINGS_FILE = ".context_settings.json"
COST_FILE = ".ai_cost.json"
DRAFTS_DIR = ".drafts"

# Files that are never offered as generation context
BUILTIN_IGNORES = [
    # Version control
    ".git/",
    ".gitignore",
    ".gitattributes",

    # Draftsmith internal
    ".draftsmith/",
    ".drafts/",
    ".context_settings.json",
    ".ai_cost.json",

    # Editor and OS noise
    ".DS_Store",
    "Thumbs.db",
    "*.swp",
    "*.swo",
    "*.tmp",
    ".vscode/",
    ".idea/",

    # Binary assets that cannot be used as prose context
    "*.png",
    "*.jpg",
    "*.jpeg",
    "*.gif",
    "*.webp",
    "*.pdf",
    "*.docx",
    "*.epub",
    "*.zip",
]

# Extensions treated as text documents
TEXT_EXTENSIONS = {".md", ".markdown", ".txt", ".json", ".yaml", ".yml"}

# Model descriptors - Anthropic Claude models only.
# Pricing is in USD per million tokens.
SUPPORTED_MODELS = {
    # Claude Sonnet 4.5 - balanced default for drafting
    "anthropic:claude-sonnet-4-5": {
        "provider": "anthropic",
        "name": "claude-sonnet-4-5-20250929",
        "max_output_tokens": 8192,
        "pricing": {
            "standard": {"input": 3.0, "output": 15.0},
            "long_context": {"input": 6.0, "output": 22.5},
        },
    },
    # Claude Haiku 4.5 - fast inline edits
    "anthropic:claude-haiku-4-5": {
        "provider": "anthropic",
        "name": "claude-haiku-4-5-20251001",
        "max_output_tokens": 8192,
        "pricing": {
            "standard": {"input": 1.0, "output": 5.0},
        },
    },
    # Claude Opus 4.1 - long-form planning
    "anthropic:claude-opus-4-1": {
        "provider": "anthropic",
        "name": "claude-opus-4-1-20250805",
        "max_output_tokens": 8192,
        "pricing": {
            "standard": {"input": 15.0, "output": 75.0},
        },
    },
}
