"""
Permission decision engine for agent tool calls.

PermissionChecker takes a tool name, its input and the working directory
and returns one of three results: allow, deny, or ask the user. Rules are
applied in a fixed order and the first one that decides wins:

1. Internal tools (host MCP servers, meta tools) are allowed.
2. Reads of files the project .gitignore matches are denied.
3. Hardcoded blocked tools are denied.
4. The settings deny list denies.
5. The settings ask list forces a prompt.
6. Read-only tools are allowed when auto_approve_read_only is set.
7. Safe Bash commands are allowed.
8. The settings allow list allows.
9. Patterns remembered this session allow Write/Edit/MultiEdit.
10. Everything else asks the user (or is denied/allowed, depending on
   AskUserBehavior).

Usage:
    checker = PermissionChecker(PermissionCheckerConfig.tui())
    result = checker.check_permission("Bash", {"command": "ls -la"}, "/project")
    if isinstance(result, PermissionAskUser):
        ...
"""
import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Optional, Union

from .constants import (
    READ_ONLY_TOOLS,
    REASON_ASK_AUTO_ALLOWED,
    REASON_ASK_DEFAULT,
    REASON_ASK_DENIED,
    REASON_ASK_LIST,
    REASON_GITIGNORE,
    REASON_INTERNAL_TOOL,
    REASON_READ_ONLY_TOOL,
    REASON_SAFE_COMMAND,
    REASON_SESSION_CACHE,
    WRITE_TOOLS,
)
from .gitignore import GitignoreMatcher
from .pattern_inference import infer_pattern
from .permission_config import (
    AskUserBehavior,
    LocalSettingsManager,
    PermissionCheckerConfig,
    PermissionRules,
)
from .permission_matcher import find_matching_pattern, parse_pattern
from .safe_commands import is_safe_bash_command
from .tool_input import BashToolInput, ReadToolInput, ToolInput, parse_tool_input
from .tool_utils import build_tool_call_string

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PermissionAllow:
    """The tool call may run."""
    reason: str


@dataclass(frozen=True)
class PermissionDeny:
    """The tool call is blocked; reason is shown to the agent."""
    reason: str


@dataclass(frozen=True)
class PermissionAskUser:
    """A human has to decide; inferred_pattern is what "remember" would store."""
    inferred_pattern: Optional[str] = None
    reason: str = REASON_ASK_DEFAULT


PermissionCheckResult = Union[PermissionAllow, PermissionDeny, PermissionAskUser]


class SessionPatternCache:
    """Thread-safe set of patterns remembered for the lifetime of a checker."""

    def __init__(self) -> None:
        self._patterns: set[str] = set()
        self._lock = threading.Lock()

    def add(self, pattern: str) -> None:
        with self._lock:
            self._patterns.add(pattern)

    def clear(self) -> None:
        with self._lock:
            self._patterns.clear()

    def snapshot(self) -> frozenset[str]:
        """Return the current patterns as an immutable set."""
        with self._lock:
            return frozenset(self._patterns)

    def __len__(self) -> int:
        with self._lock:
            return len(self._patterns)

    def __contains__(self, pattern: object) -> bool:
        with self._lock:
            return pattern in self._patterns


class PermissionChecker:
    """
    Layered policy engine deciding every tool call of an agent.

    One instance is shared by all agents of a session. check_permission only
    reads shared state; the session cache and the per-project settings
    managers are guarded by locks, so concurrent checks are safe.
    """

    def __init__(self, config: Optional[PermissionCheckerConfig] = None) -> None:
        """
        Initialize the checker.

        Args:
            config: Behaviour switches. Defaults to the interactive preset.
        """
        self._config = config or PermissionCheckerConfig()
        self._safe_filters = frozenset(self._config.safe_filters)
        self._session_cache = SessionPatternCache()
        self._settings_managers: dict[str, LocalSettingsManager] = {}
        self._gitignore_matchers: dict[str, GitignoreMatcher] = {}
        self._managers_lock = threading.Lock()
        self._disposed = False

    @property
    def config(self) -> PermissionCheckerConfig:
        return self._config

    @property
    def session_patterns(self) -> frozenset[str]:
        return self._session_cache.snapshot()

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def settings_manager_for(self, cwd: str) -> LocalSettingsManager:
        """
        Return the settings manager for a project directory.

        Managers are created once per directory and reused, which keeps their
        parse cache warm across checks.
        """
        key = os.path.normpath(cwd)
        with self._managers_lock:
            manager = self._settings_managers.get(key)
            if manager is None:
                manager = LocalSettingsManager(key)
                self._settings_managers[key] = manager
            return manager

    def gitignore_matcher_for(self, cwd: str) -> GitignoreMatcher:
        """Return the lazily created .gitignore matcher for a project directory."""
        key = os.path.normpath(cwd)
        with self._managers_lock:
            matcher = self._gitignore_matchers.get(key)
            if matcher is None:
                matcher = GitignoreMatcher(key)
                self._gitignore_matchers[key] = matcher
            return matcher

    def settings_error(self, cwd: str) -> Optional[str]:
        """Return the last settings load problem for a project, if any."""
        if not cwd:
            return None
        return self.settings_manager_for(cwd).last_error

    def _load_rules(self, cwd: str) -> PermissionRules:
        if not self._config.load_settings or not cwd:
            return PermissionRules()
        return self.settings_manager_for(cwd).read_settings().permissions

    # -------------------------------------------------------------------------
    # Decision
    # -------------------------------------------------------------------------

    def _is_internal_tool(self, tool_name: str) -> bool:
        if tool_name in self._config.internal_tools:
            return True
        return any(tool_name.startswith(prefix) for prefix in self._config.internal_tool_prefixes)

    def _ask_user(self, tool_name: str, tool_input: ToolInput, reason: str) -> PermissionCheckResult:
        behavior = self._config.ask_user_behavior
        if behavior == AskUserBehavior.DENY:
            return PermissionDeny(REASON_ASK_DENIED)
        if behavior == AskUserBehavior.ALLOW:
            return PermissionAllow(REASON_ASK_AUTO_ALLOWED)
        return PermissionAskUser(
            inferred_pattern=infer_pattern(tool_name, tool_input),
            reason=reason,
        )

    def _decide(self, tool_name: str, tool_input: ToolInput, cwd: str) -> PermissionCheckResult:
        context = {"cwd": cwd} if cwd else {}

        if self._is_internal_tool(tool_name):
            return PermissionAllow(REASON_INTERNAL_TOOL)

        if (
            self._config.respect_gitignore
            and cwd
            and isinstance(tool_input, ReadToolInput)
            and self.gitignore_matcher_for(cwd).should_ignore(tool_input.file_path)
        ):
            return PermissionDeny(REASON_GITIGNORE)

        concern = self._config.blocked_tools.get(tool_name)
        if concern is not None:
            return PermissionDeny(f"Blocked: {tool_name} {concern}")

        rules = self._load_rules(cwd)

        pattern = find_matching_pattern(
            rules.deny, tool_name, tool_input, context, self._safe_filters,
            any_segment=True,
        )
        if pattern is not None:
            return PermissionDeny(f"Blocked by deny list: matched deny list pattern {pattern}")

        pattern = find_matching_pattern(
            rules.ask, tool_name, tool_input, context, self._safe_filters,
            any_segment=True,
        )
        if pattern is not None:
            return self._ask_user(tool_name, tool_input, f"{REASON_ASK_LIST} {pattern}")

        if self._config.auto_approve_read_only and tool_name in READ_ONLY_TOOLS:
            return PermissionAllow(REASON_READ_ONLY_TOOL)

        if isinstance(tool_input, BashToolInput) and is_safe_bash_command(
            tool_input, context, self._safe_filters
        ):
            return PermissionAllow(REASON_SAFE_COMMAND)

        pattern = find_matching_pattern(
            rules.allow, tool_name, tool_input, context, self._safe_filters
        )
        if pattern is not None:
            return PermissionAllow(f"Auto-approved: matched allow list pattern {pattern}")

        if self.is_allowed_by_session_cache(tool_name, tool_input, cwd):
            return PermissionAllow(REASON_SESSION_CACHE)

        return self._ask_user(tool_name, tool_input, REASON_ASK_DEFAULT)

    def check_permission(
        self,
        tool_name: str,
        tool_input: Union[ToolInput, dict[str, Any], None],
        cwd: str,
    ) -> PermissionCheckResult:
        """
        Decide a single tool call.

        Args:
            tool_name: Name of the tool the agent wants to run.
            tool_input: Typed input, or the raw argument map from the agent.
            cwd: Working directory of the agent; locates the settings file
                and bounds cd targets and relative paths.

        Returns:
            PermissionAllow, PermissionDeny or PermissionAskUser.
        """
        if tool_input is None or isinstance(tool_input, dict):
            tool_input = parse_tool_input(tool_name, tool_input)

        result = self._decide(tool_name, tool_input, cwd)

        call = build_tool_call_string(tool_name, tool_input)
        if isinstance(result, PermissionAllow):
            logger.info(f"PERMISSION ALLOW: {call} ({result.reason})")
        elif isinstance(result, PermissionDeny):
            logger.warning(f"PERMISSION DENY: {call} ({result.reason})")
        else:
            logger.info(f"PERMISSION ASK: {call} (suggested: {result.inferred_pattern})")
        return result

    # -------------------------------------------------------------------------
    # Session cache
    # -------------------------------------------------------------------------

    def add_session_pattern(self, pattern: str) -> None:
        """
        Remember a pattern until the cache is cleared or the checker disposed.

        Malformed patterns are ignored with a warning.
        """
        if parse_pattern(pattern) is None:
            logger.warning(f"Ignoring malformed session pattern: {pattern!r}")
            return
        self._session_cache.add(pattern)
        logger.info(f"Session pattern added: {pattern}")

    def clear_session_cache(self) -> None:
        self._session_cache.clear()
        logger.debug("Session pattern cache cleared")

    def is_allowed_by_session_cache(
        self,
        tool_name: str,
        tool_input: Union[ToolInput, dict[str, Any], None],
        cwd: Optional[str] = None,
    ) -> bool:
        """
        Check the remembered patterns without running the full decision.

        Only write tools (Write, Edit, MultiEdit) are answered from the cache;
        every other tool returns False.

        Args:
            tool_name: Name of the tool.
            tool_input: Typed input or raw argument map.
            cwd: Optional working directory for relative paths.

        Returns:
            True if a remembered pattern covers the call.
        """
        if not self._config.enable_session_cache or tool_name not in WRITE_TOOLS:
            return False
        if tool_input is None or isinstance(tool_input, dict):
            tool_input = parse_tool_input(tool_name, tool_input)

        context = {"cwd": cwd} if cwd else {}
        return find_matching_pattern(
            self._session_cache.snapshot(), tool_name, tool_input, context, self._safe_filters
        ) is not None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def dispose(self) -> None:
        """Clear the session cache and drop settings and .gitignore caches. Safe to repeat."""
        self._session_cache.clear()
        with self._managers_lock:
            self._settings_managers.clear()
            self._gitignore_matchers.clear()
        if not self._disposed:
            self._disposed = True
            logger.debug("Permission checker disposed")

    def __enter__(self) -> "PermissionChecker":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.dispose()
