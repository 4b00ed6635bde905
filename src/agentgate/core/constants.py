"""
Centralized constants for agentgate.

All magic numbers, strings, and fixed tool lists are defined here.
This ensures consistency across modules and makes maintenance easier.

Usage:
    from .constants import (
        INTERNAL_TOOL_PREFIXES,
        LOG_FORMAT_FILE,
        WRITE_TOOLS,
    )
"""


# =============================================================================
# Logging Constants
# =============================================================================

# Log format for file-based logging
LOG_FORMAT_FILE: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Log format for colored console (using colorlog)
LOG_FORMAT_COLORED: str = (
    "%(log_color)s%(levelname)-8s%(reset)s %(cyan)s%(name)s%(reset)s: %(message)s"
)

# Rotating file handler settings
LOG_MAX_BYTES: int = 10 * 1024 * 1024  # 10 MB
LOG_BACKUP_COUNT: int = 5

# Log file names
LOG_FILE_CLI: str = "agentgate_cli.log"


# =============================================================================
# Color Configuration for colorlog
# =============================================================================

COLORLOG_COLORS: dict[str, str] = {
    "DEBUG": "white",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


# =============================================================================
# Display Constants
# =============================================================================

# Preview length of tool arguments in logs and prompts
TOOL_PREVIEW_LENGTH: int = 80


# =============================================================================
# Settings File Layout
# =============================================================================

SETTINGS_DIR_NAME: str = ".claude"
SETTINGS_FILE_NAME: str = "settings.local.json"


# =============================================================================
# Tool Families
# =============================================================================

# Tools whose session-cache approvals are honoured
WRITE_TOOLS: frozenset[str] = frozenset({"Write", "Edit", "MultiEdit"})

# Tools that only read from the project
READ_ONLY_TOOLS: frozenset[str] = frozenset({"Read", "Grep", "Glob"})


# =============================================================================
# Policy Defaults
# =============================================================================

# MCP servers owned by the host application itself
INTERNAL_TOOL_PREFIXES: tuple[str, ...] = (
    "mcp__agentgate-",
    "mcp__flutter-runtime__",
)

# Meta tools with no side effects outside the agent process
INTERNAL_TOOLS: frozenset[str] = frozenset({
    "TodoWrite",
    "BashOutput",
    "KillShell",
    "KillBash",
})

# Tools that are always blocked, with the concern reported to the agent
BLOCKED_TOOLS: dict[str, str] = {
    "mcp__dart__analyze_files": (
        "floods context with too much output. "
        "Use `dart analyze` via Bash instead."
    ),
}

# Commands tolerated on the receiving side of a pipe
DEFAULT_SAFE_FILTERS: frozenset[str] = frozenset({
    "head",
    "tail",
    "grep",
    "egrep",
    "fgrep",
    "cut",
    "sort",
    "uniq",
    "wc",
    "tr",
    "column",
    "nl",
    "jq",
    "less",
    "more",
    "cat",
    "sed",
})

LOCALHOST_NAMES: frozenset[str] = frozenset({"localhost", "127.0.0.1", "::1"})


# =============================================================================
# Decision Reasons
# =============================================================================

REASON_INTERNAL_TOOL: str = "Auto-approved internal tool"
REASON_READ_ONLY_TOOL: str = "Auto-approved read-only tool"
REASON_SAFE_COMMAND: str = "Auto-approved safe command"
REASON_SESSION_CACHE: str = "Auto-approved from session cache"
REASON_GITIGNORE: str = "Blocked by .gitignore"
REASON_ASK_LIST: str = "Requires approval: matched ask list pattern"
REASON_ASK_DEFAULT: str = "No rule matched; user approval required"
REASON_ASK_DENIED: str = (
    "Operation requires user approval (not available in current mode)"
)
REASON_ASK_AUTO_ALLOWED: str = "Auto-approved (ask-user disabled for testing)"


# =============================================================================
# Interactive Approval
# =============================================================================

DEFAULT_PERMISSION_TIMEOUT_SECONDS: float = 300.0
SESSION_ENDED_REASON: str = "Session ended"
