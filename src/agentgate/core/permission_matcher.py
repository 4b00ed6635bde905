"""
Permission rule matching.

A rule is a string such as "Bash(dart pub:*)", "Write(/proj/**)",
"WebFetch(domain:github.com)", "mcp__server__.*" or a bare tool name.
The text before the parenthesis is a regex over the tool name; the
argument clause is interpreted per tool family.

Matching is pure and never raises. Anything ambiguous (invalid regex,
unbalanced parentheses, traversal in a path) is a non-match.

Usage:
    from .permission_matcher import matches

    matches("Bash(git status)", "Bash", BashToolInput(command="git status"))
    matches("Write(/proj/**)", "Write", WriteToolInput(file_path="/proj/a.py"))
"""
import fnmatch
import functools
import os
import posixpath
import re
import shlex
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import unquote, urlparse

from .bash_parser import (
    CommandType,
    base_command,
    has_command_substitution,
    is_cd_within_working_dir,
    parse_command,
    split_words,
)
from .constants import DEFAULT_SAFE_FILTERS
from .safe_commands import COMMAND_WRAPPERS, has_dangerous_flags
from .tool_input import (
    BashToolInput,
    GlobToolInput,
    GrepToolInput,
    ToolInput,
    WebFetchToolInput,
    WebSearchToolInput,
    file_path_of,
)

# Upper bound on nested percent-encoding layers we unwrap
_MAX_DECODE_ROUNDS = 5


@dataclass(frozen=True)
class PermissionPattern:
    """A rule split into its tool-name regex and optional argument clause."""
    tool: str
    argument: Optional[str] = None

    def __str__(self) -> str:
        if self.argument is None:
            return self.tool
        return f"{self.tool}({self.argument})"


def parse_pattern(pattern: str) -> Optional[PermissionPattern]:
    """
    Split a rule string into tool part and argument clause.

    Args:
        pattern: Rule such as "Bash(npm test:*)".

    Returns:
        PermissionPattern, or None if the rule is malformed.
    """
    if not isinstance(pattern, str):
        return None
    pattern = pattern.strip()
    if not pattern:
        return None

    open_idx = pattern.find("(")
    if open_idx == -1:
        if ")" in pattern:
            return None
        return PermissionPattern(tool=pattern)
    if open_idx == 0 or not pattern.endswith(")"):
        return None
    return PermissionPattern(tool=pattern[:open_idx], argument=pattern[open_idx + 1:-1])


@functools.lru_cache(maxsize=1024)
def _compile(expression: str) -> Optional[re.Pattern[str]]:
    try:
        return re.compile(expression)
    except re.error:
        return None


def tool_name_matches(name_pattern: str, tool_name: str) -> bool:
    """
    Test the tool-name part of a rule.

    The part is a regex anchored at both ends. A part that is not a valid
    regex (a lone "*", for instance) is matched as a shell wildcard.
    """
    if not name_pattern or not tool_name:
        return False
    compiled = _compile(name_pattern)
    if compiled is None:
        return fnmatch.fnmatchcase(tool_name, name_pattern)
    return compiled.fullmatch(tool_name) is not None


# =============================================================================
# Bash
# =============================================================================

def _clause_matches(clause: str, text: str) -> bool:
    if clause.endswith(":*"):
        prefix = clause[:-2]
        if not prefix:
            return False
        if text.startswith(prefix):
            return True
        compiled = _compile(prefix)
        return compiled is not None and compiled.match(text) is not None

    if clause == text:
        return True
    compiled = _compile(clause)
    return compiled is not None and compiled.fullmatch(text) is not None


def _segment_matches_clause(clause: str, segment: str, full_command: str) -> bool:
    if clause == full_command:
        return True
    if has_command_substitution(segment):
        return False
    return _clause_matches(clause, segment)


def _matches_bash(
    clause: str,
    command: str,
    cwd: Optional[str],
    safe_filters: frozenset[str],
) -> bool:
    if clause == "*":
        return True
    command = command.strip()
    if not command or not clause:
        return clause == command

    segments = parse_command(command)
    cd_segments = [s for s in segments if s.type == CommandType.CD]
    other_segments = [s for s in segments if s.type != CommandType.CD]

    if cwd:
        for segment in cd_segments:
            if not is_cd_within_working_dir(segment.command, cwd):
                return False

    if not other_segments:
        return all(_segment_matches_clause(clause, s.command, command) for s in cd_segments)

    explicit_match = False
    for segment in other_segments:
        if _segment_matches_clause(clause, segment.command, command):
            explicit_match = True
            continue
        if (
            segment.type == CommandType.PIPELINE_PART
            and base_command(segment.command) in safe_filters
            and not has_dangerous_flags(segment.command)
        ):
            continue
        return False
    return explicit_match


def _substitution_bodies(segment: str) -> list[str]:
    """Return the text inside $(...), <(...), >(...) and backticks."""
    bodies: list[str] = []
    i = 0
    while i < len(segment):
        if segment[i] == "`":
            end = segment.find("`", i + 1)
            if end == -1:
                end = len(segment)
            bodies.append(segment[i + 1:end])
            i = end + 1
            continue
        if segment.startswith(("$(", "<(", ">("), i):
            depth, j = 1, i + 2
            while j < len(segment) and depth:
                if segment[j] == "(":
                    depth += 1
                elif segment[j] == ")":
                    depth -= 1
                j += 1
            bodies.append(segment[i + 2:j - 1 if depth == 0 else j])
            i = j
            continue
        i += 1
    return bodies


def _unwrapped_commands(segment: str) -> list[str]:
    # "timeout 5 rm x", "env A=1 rm x": every tail after a wrapper may be the real command
    words = split_words(segment)
    if not words or words[0] not in COMMAND_WRAPPERS:
        return []
    return [shlex.join(words[i:]) for i in range(1, len(words))]


def command_parts(command: str) -> list[str]:
    """
    Return every command a Bash string can run.

    That is each top-level segment, the commands behind wrappers such as
    env or timeout, and, recursively, the segments inside command
    substitution.
    """
    parts: list[str] = []
    for segment in parse_command(command):
        parts.append(segment.command)
        parts.extend(_unwrapped_commands(segment.command))
        for body in _substitution_bodies(segment.command):
            parts.extend(command_parts(body))
    return parts


def _restricts_bash(clause: str, command: str) -> bool:
    if clause == "*":
        return True
    command = command.strip()
    if not command or not clause:
        return clause == command
    if _clause_matches(clause, command):
        return True
    return any(_clause_matches(clause, part) for part in command_parts(command))


# =============================================================================
# File paths
# =============================================================================

def _fully_decoded(path: str) -> str:
    decoded = path
    for _ in range(_MAX_DECODE_ROUNDS):
        next_value = unquote(decoded)
        if next_value == decoded:
            break
        decoded = next_value
    return decoded


def has_path_traversal(path: str) -> bool:
    """Return True if the path, fully percent-decoded, has a ".." component."""
    decoded = _fully_decoded(path).replace("\\", "/")
    return ".." in decoded.split("/")


def _absolutize(path: str, cwd: Optional[str]) -> str:
    if path.startswith("~"):
        path = os.path.expanduser(path)
    if not posixpath.isabs(path) and cwd:
        path = posixpath.join(cwd, path)
    return posixpath.normpath(path)


def glob_to_regex(glob: str) -> str:
    """
    Translate a path glob into an anchored-ready regex.

    "**" spans directories ("a/**/b" also matches "a/b"), "*" stays within
    one component and "?" is one non-separator character.
    """
    parts: list[str] = []
    i = 0
    while i < len(glob):
        if glob.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif glob.startswith("**", i):
            parts.append(".*")
            i += 2
        elif glob[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif glob[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(glob[i]))
            i += 1
    return "".join(parts)


def matches_path_glob(glob: str, path: str, cwd: Optional[str] = None) -> bool:
    """
    Match a file path against a path glob.

    Empty paths and paths with traversal components never match. Relative
    paths and globs are resolved against cwd; "~" expands to the home
    directory.

    Args:
        glob: Pattern argument such as "/proj/**" or "src/*.py".
        path: Path from the tool input.
        cwd: Working directory for relative paths.

    Returns:
        True if the normalized path matches the glob.
    """
    if not path or not glob:
        return False
    if has_path_traversal(path):
        return False

    normalized = _absolutize(path, cwd)
    compiled = _compile(glob_to_regex(_absolutize(glob, cwd)))
    if compiled is None:
        return False
    return compiled.fullmatch(normalized) is not None


def _matches_directory(glob: str, path: str, cwd: Optional[str]) -> bool:
    directory = path or cwd or ""
    if not directory or not glob or has_path_traversal(directory):
        return False

    normalized = _absolutize(directory, cwd)
    compiled = _compile(glob_to_regex(_absolutize(glob, cwd)))
    if compiled is None:
        return False
    # "/proj/**" covers the directory /proj itself
    return (
        compiled.fullmatch(normalized) is not None
        or compiled.fullmatch(normalized.rstrip("/") + "/") is not None
    )


# =============================================================================
# Web
# =============================================================================

def url_host(url: str) -> Optional[str]:
    """Return the lowercase host of a URL, or None if it has none."""
    try:
        host = urlparse(url).hostname
    except ValueError:
        return None
    return host or None


def _matches_web_fetch(clause: str, url: str) -> bool:
    if clause == "*":
        return True
    if not clause:
        return url == ""

    if clause.startswith("domain:"):
        domain = clause[len("domain:"):].strip().lower().rstrip(".")
        host = url_host(url)
        if not domain or not host:
            return False
        host = host.rstrip(".")
        return host == domain or host.endswith("." + domain)

    compiled = _compile(clause)
    return compiled is not None and compiled.fullmatch(url) is not None


def _matches_web_search(clause: str, query: str) -> bool:
    if clause == "*":
        return True
    if not clause:
        return query == ""
    if clause.startswith("query:"):
        clause = clause[len("query:"):]
    compiled = _compile(clause)
    return compiled is not None and compiled.search(query) is not None


# =============================================================================
# Entry point
# =============================================================================

def matches(
    pattern: str,
    tool_name: str,
    tool_input: ToolInput,
    context: Optional[dict[str, str]] = None,
    safe_filters: Optional[Iterable[str]] = None,
) -> bool:
    """
    Decide whether a permission rule covers a tool call.

    Args:
        pattern: Rule string.
        tool_name: Name of the tool being called.
        tool_input: Typed input of the call.
        context: Optional mapping; "cwd" resolves relative paths and bounds
            cd targets in Bash commands.
        safe_filters: Commands tolerated on the receiving side of a pipe.
            Defaults to DEFAULT_SAFE_FILTERS.

    Returns:
        True if the rule matches.
    """
    parsed = parse_pattern(pattern)
    if parsed is None or not tool_name_matches(parsed.tool, tool_name):
        return False
    if parsed.argument is None:
        return True

    clause = parsed.argument
    cwd = (context or {}).get("cwd") or None
    filters = frozenset(safe_filters) if safe_filters is not None else DEFAULT_SAFE_FILTERS

    if isinstance(tool_input, BashToolInput):
        return _matches_bash(clause, tool_input.command, cwd, filters)

    path = file_path_of(tool_input)
    if path is not None:
        return matches_path_glob(clause, path, cwd)

    if isinstance(tool_input, WebFetchToolInput):
        return _matches_web_fetch(clause, tool_input.url)
    if isinstance(tool_input, WebSearchToolInput):
        return _matches_web_search(clause, tool_input.query)
    if isinstance(tool_input, (GrepToolInput, GlobToolInput)):
        return _matches_directory(clause, tool_input.path, cwd)

    # MCP and other untyped tools are matched by name only
    return False


def matches_any_segment(
    pattern: str,
    tool_name: str,
    tool_input: ToolInput,
    context: Optional[dict[str, str]] = None,
) -> bool:
    """
    Decide whether a restricting rule (deny or ask) covers a tool call.

    A Bash rule hits as soon as it covers the whole command or any single
    command in it (see command_parts). cd targets outside the working
    directory do not cancel the hit, so "cd /tmp && rm -rf x" is caught by
    "Bash(rm:*)". Other tools are matched exactly like matches().

    Args:
        pattern: Rule string.
        tool_name: Name of the tool being called.
        tool_input: Typed input of the call.
        context: Optional mapping with "cwd".

    Returns:
        True if the rule restricts the call.
    """
    if not isinstance(tool_input, BashToolInput):
        return matches(pattern, tool_name, tool_input, context)

    parsed = parse_pattern(pattern)
    if parsed is None or not tool_name_matches(parsed.tool, tool_name):
        return False
    if parsed.argument is None:
        return True
    return _restricts_bash(parsed.argument, tool_input.command)


def find_matching_pattern(
    patterns: Iterable[str],
    tool_name: str,
    tool_input: ToolInput,
    context: Optional[dict[str, str]] = None,
    safe_filters: Optional[Iterable[str]] = None,
    any_segment: bool = False,
) -> Optional[str]:
    """
    Return the first pattern that matches, or None.

    With any_segment, patterns are tested with matches_any_segment, which
    is how deny and ask lists are evaluated.
    """
    for pattern in patterns:
        if any_segment:
            hit = matches_any_segment(pattern, tool_name, tool_input, context)
        else:
            hit = matches(pattern, tool_name, tool_input, context, safe_filters)
        if hit:
            return pattern
    return None
