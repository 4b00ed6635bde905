"""
Shared utility functions for tool permission handling.

This module contains common functions used by the checker, hooks.py and
permissions.py for describing tool calls in logs and denial messages.
"""
from typing import Any, Optional, Union

from .constants import SETTINGS_DIR_NAME, SETTINGS_FILE_NAME, TOOL_PREVIEW_LENGTH
from .tool_input import ToolInput

# Argument shown for each tool when describing a call
TOOL_PARAM_MAP: dict[str, tuple[str, ...]] = {
    "Read": ("file_path",),
    "Write": ("file_path",),
    "Edit": ("file_path",),
    "MultiEdit": ("file_path",),
    "Glob": ("pattern", "path"),
    "Grep": ("pattern", "path"),
    "Bash": ("command",),
    "WebFetch": ("url",),
    "WebSearch": ("query",),
}


def _truncate(value: str, max_length: int) -> str:
    if len(value) > max_length:
        return value[:max_length] + "..."
    return value


def build_tool_call_string(
    tool_name: str,
    tool_input: Union[ToolInput, dict[str, Any]],
    max_length: int = TOOL_PREVIEW_LENGTH,
) -> str:
    """
    Build a short, human-readable description of a tool call.

    Args:
        tool_name: Name of the tool being called.
        tool_input: Typed input or raw argument map.
        max_length: Longest argument shown before truncation.

    Returns:
        Formatted string, e.g. "Read(./input/task.md)" or "Bash(ls -la)".

    Examples:
        >>> build_tool_call_string("Bash", {"command": "ls -la"})
        'Bash(ls -la)'
    """
    args = tool_input if isinstance(tool_input, dict) else tool_input.to_dict()
    param_keys = TOOL_PARAM_MAP.get(tool_name)
    if param_keys is None:
        return tool_name

    value = ""
    for key in param_keys:
        candidate = args.get(key)
        if isinstance(candidate, str) and candidate:
            value = candidate
            break
    return f"{tool_name}({_truncate(value, max_length)})"


def build_denial_message(
    tool_name: str,
    tool_input: Union[ToolInput, dict[str, Any]],
    reason: str,
    suggested_pattern: Optional[str] = None,
    max_value_length: int = 50,
) -> str:
    """
    Build the message returned to the agent when a call is blocked.

    Args:
        tool_name: The tool that was denied.
        tool_input: The input that was attempted.
        reason: Reason from the permission decision.
        suggested_pattern: Rule that would allow similar calls, if known.
        max_value_length: Maximum length of displayed values before truncation.

    Returns:
        Message naming the call, the reason, and how a user could allow it.
    """
    args = tool_input if isinstance(tool_input, dict) else tool_input.to_dict()

    if tool_name == "Bash":
        command = _truncate(str(args.get("command", "")), max_value_length)
        base_msg = f"Bash command '{command}' is not permitted"
    elif "file_path" in args:
        path = _truncate(str(args.get("file_path", "")), max_value_length)
        base_msg = f"{tool_name} for '{path}' is not permitted"
    else:
        base_msg = f"{tool_name} is not permitted"

    message = f"{base_msg}: {reason}"
    if suggested_pattern:
        message += (
            f" To allow similar calls, add '{suggested_pattern}' to permissions.allow"
            f" in {SETTINGS_DIR_NAME}/{SETTINGS_FILE_NAME}."
        )
    return message
