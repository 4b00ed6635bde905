"""
Suggested rules for "allow and remember".

When a tool call needs approval the checker proposes the rule an
approving user most likely wants to keep: broad enough to cover the next
similar call, narrow enough not to open everything.
"""
import posixpath
import re

from .bash_parser import CommandType, parse_command, split_words
from .permission_matcher import url_host
from .tool_input import (
    BashToolInput,
    ToolInput,
    WebFetchToolInput,
    WebSearchToolInput,
    file_path_of,
)

_FILE_EXTENSION = re.compile(r"\.[A-Za-z0-9]+$")


def _looks_like_path(word: str) -> bool:
    return (
        "/" in word
        or word.startswith((".", "~"))
        or bool(_FILE_EXTENSION.search(word))
    )


def infer_bash_pattern(command: str) -> str:
    """
    Build a Bash rule from the first non-cd segment of a command.

    Words are collected up to the first flag or path-like argument, so
    "cd /p && dart pub get" gives "Bash(dart pub get:*)" and
    "find /any -name x" gives "Bash(find:*)".
    """
    segments = parse_command(command)
    if not segments:
        return "Bash(*)"

    non_cd = [s for s in segments if s.type != CommandType.CD]
    if not non_cd:
        return "Bash(cd:*)"

    words = split_words(non_cd[0].command)
    base: list[str] = []
    for index, word in enumerate(words):
        if word.startswith("-"):
            break
        if index > 0 and _looks_like_path(word):
            break
        base.append(word)

    if not base:
        return "Bash(*)"
    return f"Bash({' '.join(base)}:*)"


def infer_file_pattern(tool_name: str, file_path: str) -> str:
    """Build a directory-wide rule for a file tool."""
    if not file_path:
        return f"{tool_name}(*)"
    directory = posixpath.dirname(file_path)
    if directory in ("", "."):
        return f"{tool_name}(**)"
    return f"{tool_name}({directory.rstrip('/')}/**)"


def infer_pattern(tool_name: str, tool_input: ToolInput) -> str:
    """
    Suggest a rule to remember for a tool call.

    Args:
        tool_name: Name of the tool.
        tool_input: Typed input of the call.

    Returns:
        Rule string, e.g. "Bash(npm test:*)", "Write(/proj/lib/**)",
        "WebFetch(domain:pub.dev)", or the bare tool name.
    """
    if isinstance(tool_input, BashToolInput):
        return infer_bash_pattern(tool_input.command)

    path = file_path_of(tool_input)
    if path is not None:
        return infer_file_pattern(tool_name, path)

    if isinstance(tool_input, WebFetchToolInput):
        host = url_host(tool_input.url)
        return f"WebFetch(domain:{host})" if host else "WebFetch(*)"
    if isinstance(tool_input, WebSearchToolInput):
        return "WebSearch"
    return tool_name
