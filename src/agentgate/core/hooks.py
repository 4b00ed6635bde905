"""
SDK hooks integration for agentgate.

Exposes the permission checker as a Claude Agent SDK PreToolUse hook and
provides the HookResult type shared with the CLI hook mode, which speaks
the same JSON shape to Claude Code command hooks.

Usage:
    from agentgate.core.hooks import HooksManager, create_permission_hook

    manager = HooksManager()
    manager.add_pre_tool_hook(create_permission_hook(checker, cwd="/project"))

    options = ClaudeAgentOptions(
        hooks=manager.build_hooks_config()
    )
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from claude_agent_sdk import HookMatcher

from .permission_checker import (
    PermissionAllow,
    PermissionChecker,
    PermissionCheckResult,
    PermissionDeny,
)
from .tool_input import parse_tool_input
from .tool_utils import build_denial_message

logger = logging.getLogger(__name__)


# Type aliases for hook callbacks
# Signature: (input_data, tool_use_id, context) -> dict
HookCallback = Callable[
    [dict[str, Any], Optional[str], Any],
    Awaitable[dict[str, Any]]
]


@dataclass
class HookResult:
    """
    Result from a hook callback.

    Used to communicate decisions back to the SDK or to Claude Code.
    """
    # For PreToolUse: permission decision
    permission_decision: Optional[str] = None  # "allow", "deny", "ask"
    permission_reason: Optional[str] = None

    def to_sdk_response(self, hook_event: str) -> dict[str, Any]:
        """
        Convert to SDK hook response format.

        Args:
            hook_event: The hook event name (PreToolUse, PostToolUse, etc.)

        Returns:
            Dictionary in SDK hook response format.
        """
        response: dict[str, Any] = {}

        if self.permission_decision:
            hook_specific: dict[str, Any] = {
                "hookEventName": hook_event,
                "permissionDecision": self.permission_decision,
            }
            if self.permission_reason:
                hook_specific["permissionDecisionReason"] = self.permission_reason
            response["hookSpecificOutput"] = hook_specific

        return response

    @classmethod
    def from_check_result(
        cls,
        result: PermissionCheckResult,
        tool_name: str,
        tool_input: dict[str, Any],
    ) -> "HookResult":
        """
        Translate a checker decision into a PreToolUse hook result.

        AskUser becomes "ask" so the host shows its own approval prompt.
        """
        if isinstance(result, PermissionAllow):
            return cls(permission_decision="allow", permission_reason=result.reason)
        if isinstance(result, PermissionDeny):
            return cls(
                permission_decision="deny",
                permission_reason=build_denial_message(tool_name, tool_input, result.reason),
            )
        reason = result.reason
        if result.inferred_pattern:
            reason = f"{reason} (suggested rule: {result.inferred_pattern})"
        return cls(permission_decision="ask", permission_reason=reason)


class HooksManager:
    """
    Collects SDK hook callbacks and builds ClaudeAgentOptions.hooks.
    """

    def __init__(self) -> None:
        """Initialize the hooks manager."""
        self._pre_tool_hooks: list[tuple[Optional[str], HookCallback]] = []

    def add_pre_tool_hook(
        self,
        callback: HookCallback,
        matcher: Optional[str] = None
    ) -> None:
        """
        Add a PreToolUse hook callback.

        Args:
            callback: Async function (input_data, tool_use_id, context) -> dict
            matcher: Optional tool name pattern (e.g., "Bash", "Write|Edit")
        """
        self._pre_tool_hooks.append((matcher, callback))

    def build_hooks_config(self) -> dict[str, list[HookMatcher]]:
        """
        Build the hooks configuration for ClaudeAgentOptions.

        Returns:
            Dictionary mapping hook events to HookMatcher lists.
        """
        config: dict[str, list[HookMatcher]] = {}

        if self._pre_tool_hooks:
            config["PreToolUse"] = [
                HookMatcher(matcher=matcher, hooks=[callback])
                for matcher, callback in self._pre_tool_hooks
            ]

        return config


def evaluate_hook_input(
    checker: PermissionChecker,
    input_data: dict[str, Any],
    default_cwd: str = "",
) -> HookResult:
    """
    Run the checker on a PreToolUse hook payload.

    Args:
        checker: Permission checker to consult.
        input_data: Payload with "tool_name", "tool_input" and optionally "cwd".
        default_cwd: Used when the payload carries no cwd.

    Returns:
        HookResult carrying the decision.
    """
    tool_name = input_data.get("tool_name") or ""
    raw_input = input_data.get("tool_input")
    if not isinstance(raw_input, dict):
        raw_input = {}
    cwd = input_data.get("cwd") or default_cwd

    tool_input = parse_tool_input(tool_name, raw_input)
    result = checker.check_permission(tool_name, tool_input, cwd)
    return HookResult.from_check_result(result, tool_name, raw_input)


def create_permission_hook(
    checker: PermissionChecker,
    cwd: str = "",
    on_permission_check: Optional[Callable[[str, str], None]] = None,
) -> HookCallback:
    """
    Create a PreToolUse hook that consults the permission checker.

    Args:
        checker: Permission checker to consult.
        cwd: Working directory used when the hook payload has none.
        on_permission_check: Optional callback called with (tool_name, decision).

    Returns:
        Async hook callback function.
    """

    async def permission_hook(
        input_data: dict[str, Any],
        tool_use_id: Optional[str],
        context: Any
    ) -> dict[str, Any]:
        """PreToolUse hook mapping checker decisions to allow/deny/ask."""
        result = evaluate_hook_input(checker, input_data, default_cwd=cwd)
        tool_name = input_data.get("tool_name", "")
        logger.debug(f"Permission hook: {tool_name} -> {result.permission_decision}")

        if on_permission_check:
            on_permission_check(tool_name, result.permission_decision or "")

        return result.to_sdk_response("PreToolUse")

    return permission_hook
