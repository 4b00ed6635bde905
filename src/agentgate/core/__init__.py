"""
Core modules for agentgate.

This package contains all the core functionality:
- bash_parser.py: Quote-aware splitting of shell commands
- cli_common.py: Shared CLI argument parsing utilities
- constants.py: Centralized constants (log formats, tool sets, reasons)
- exceptions.py: Custom exceptions
- gate_cli.py: Command-line entry point (check, hook, allow)
- gitignore.py: .gitignore matching for Read calls
- hooks.py: SDK PreToolUse hook and hook response format
- logging_config.py: Unified logging configuration
- pattern_inference.py: Suggested rules for "allow and remember"
- permission_checker.py: Layered permission decision engine
- permission_config.py: Settings file and checker configuration
- permission_matcher.py: Permission rule parsing and matching
- permissions.py: SDK can_use_tool callback
- safe_commands.py: Read-only Bash command classifier
- tool_input.py: Typed tool inputs
- tool_utils.py: Tool call descriptions and denial messages
"""
from .bash_parser import (
    CommandType,
    ParsedCommand,
    parse_command,
    split_top_level,
    is_cd_within_working_dir,
)
from .constants import (
    LOG_FORMAT_FILE,
    LOG_MAX_BYTES,
    LOG_BACKUP_COUNT,
    WRITE_TOOLS,
    READ_ONLY_TOOLS,
)
from .exceptions import GateError, SettingsError, InvalidToolInputError
from .gitignore import GitignoreMatcher
from .hooks import (
    HooksManager,
    HookResult,
    create_permission_hook,
    evaluate_hook_input,
)
from .logging_config import (
    setup_file_logging,
    setup_cli_logging,
)
from .pattern_inference import infer_pattern
from .permission_checker import (
    PermissionAllow,
    PermissionDeny,
    PermissionAskUser,
    PermissionCheckResult,
    PermissionChecker,
    SessionPatternCache,
)
from .permission_config import (
    AskUserBehavior,
    PermissionRules,
    LocalSettings,
    LocalSettingsManager,
    PermissionCheckerConfig,
)
from .permission_matcher import (
    PermissionPattern,
    parse_pattern,
    matches,
    find_matching_pattern,
    matches_any_segment,
    command_parts,
)
from .permissions import (
    create_permission_callback,
    create_permission_hooks,
)
from .safe_commands import is_command_safe, is_safe_bash_command
from .tool_input import (
    BashToolInput,
    ReadToolInput,
    WriteToolInput,
    EditToolInput,
    MultiEditToolInput,
    WebFetchToolInput,
    WebSearchToolInput,
    GrepToolInput,
    GlobToolInput,
    UnknownToolInput,
    ToolInput,
    parse_tool_input,
)
from .tool_utils import build_tool_call_string, build_denial_message

__all__ = [
    # Bash parsing
    "CommandType",
    "ParsedCommand",
    "parse_command",
    "split_top_level",
    "is_cd_within_working_dir",
    # Constants
    "LOG_FORMAT_FILE",
    "LOG_MAX_BYTES",
    "LOG_BACKUP_COUNT",
    "WRITE_TOOLS",
    "READ_ONLY_TOOLS",
    # Exceptions
    "GateError",
    "SettingsError",
    "InvalidToolInputError",
    # Gitignore
    "GitignoreMatcher",
    # Hooks
    "HooksManager",
    "HookResult",
    "create_permission_hook",
    "evaluate_hook_input",
    # Logging
    "setup_file_logging",
    "setup_cli_logging",
    # Pattern inference
    "infer_pattern",
    # Checker
    "PermissionAllow",
    "PermissionDeny",
    "PermissionAskUser",
    "PermissionCheckResult",
    "PermissionChecker",
    "SessionPatternCache",
    # Configuration
    "AskUserBehavior",
    "PermissionRules",
    "LocalSettings",
    "LocalSettingsManager",
    "PermissionCheckerConfig",
    # Matching
    "PermissionPattern",
    "parse_pattern",
    "matches",
    "find_matching_pattern",
    "matches_any_segment",
    "command_parts",
    # SDK integration
    "create_permission_callback",
    "create_permission_hooks",
    # Safe commands
    "is_command_safe",
    "is_safe_bash_command",
    # Tool inputs
    "BashToolInput",
    "ReadToolInput",
    "WriteToolInput",
    "EditToolInput",
    "MultiEditToolInput",
    "WebFetchToolInput",
    "WebSearchToolInput",
    "GrepToolInput",
    "GlobToolInput",
    "UnknownToolInput",
    "ToolInput",
    "parse_tool_input",
    # Tool utils
    "build_tool_call_string",
    "build_denial_message",
]
