"""
Claude Agent SDK integration for agentgate.

Turns a PermissionChecker into the can_use_tool callback and the hooks
configuration accepted by ClaudeAgentOptions. Undecided calls are handed
to an optional async approver (usually
InteractivePermissionService.request_permission); without one they are
denied.
"""
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from claude_agent_sdk import (
    PermissionResultAllow,
    PermissionResultDeny,
    ToolPermissionContext,
)

from .hooks import HooksManager, create_permission_hook
from .permission_checker import (
    PermissionAllow,
    PermissionChecker,
    PermissionDeny,
)
from .tool_input import ToolInput, parse_tool_input
from .tool_utils import build_denial_message, build_tool_call_string

logger = logging.getLogger(__name__)

# Signature: (tool_name, tool_input, cwd, inferred_pattern) -> decision
AskCallback = Callable[
    [str, ToolInput, str, Optional[str]],
    Awaitable[Union[PermissionAllow, PermissionDeny]]
]


def create_permission_callback(
    checker: PermissionChecker,
    cwd: str,
    on_ask: Optional[AskCallback] = None,
    on_permission_check: Optional[Callable[[str, str], None]] = None,
):
    """
    Create a can_use_tool callback that enforces the permission checker.

    Args:
        checker: Permission checker shared by the session.
        cwd: Working directory of the agent.
        on_ask: Async approver for calls the checker cannot decide. When None,
            such calls are denied with the checker's reason.
        on_permission_check: Optional callback for tracing permission decisions.
            Called with (tool_name: str, decision: str).

    Returns:
        Async permission callback for ClaudeAgentOptions.can_use_tool.
    """

    async def can_use_tool(
        tool_name: str,
        tool_input: dict[str, Any],
        context: ToolPermissionContext
    ) -> PermissionResultAllow | PermissionResultDeny:
        """Permission callback backed by the layered checker."""
        typed_input = parse_tool_input(tool_name, tool_input)
        logger.info(f"PERMISSION CHECK: {build_tool_call_string(tool_name, typed_input)}")

        result = checker.check_permission(tool_name, typed_input, cwd)
        suggested: Optional[str] = None

        if not isinstance(result, (PermissionAllow, PermissionDeny)):
            suggested = result.inferred_pattern
            if on_ask is None:
                result = PermissionDeny(result.reason)
            else:
                result = await on_ask(tool_name, typed_input, cwd, suggested)

        decision = "allow" if isinstance(result, PermissionAllow) else "deny"
        logger.info(f"PERMISSION CHECK: decision={decision}")
        if on_permission_check:
            on_permission_check(tool_name, decision)

        if isinstance(result, PermissionAllow):
            return PermissionResultAllow(behavior="allow")

        return PermissionResultDeny(
            behavior="deny",
            message=build_denial_message(tool_name, typed_input, result.reason, suggested),
            interrupt=False,
        )

    return can_use_tool


def create_permission_hooks(
    checker: PermissionChecker,
    cwd: str,
    on_permission_check: Optional[Callable[[str, str], None]] = None,
) -> dict:
    """
    Create SDK hooks configuration for permission management.

    Returns a hooks config dict that can be passed to ClaudeAgentOptions.

    Args:
        checker: Permission checker shared by the session.
        cwd: Working directory used when a hook payload carries none.
        on_permission_check: Optional callback for tracing permission decisions.

    Returns:
        Dictionary for ClaudeAgentOptions.hooks parameter.
    """
    manager = HooksManager()
    manager.add_pre_tool_hook(
        create_permission_hook(checker, cwd=cwd, on_permission_check=on_permission_check)
    )
    return manager.build_hooks_config()
