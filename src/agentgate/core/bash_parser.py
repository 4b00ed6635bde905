"""
Shell command splitting for permission checks.

Agents hand us free-form Bash strings. Before any rule can be applied the
string is cut into top-level segments along the control operators
(&&, ||, ;, |, |&, newline and a background &), with quoted text kept
opaque. No expansion or evaluation happens here; paths such as ./x, ../x
and ~/x are returned verbatim and resolved by the callers.

Unterminated quotes are not an error: the rest of the string is taken
literally and stays in the segment that opened the quote.

Usage:
    from .bash_parser import split_top_level, split_leading_cd

    split_top_level("cd /p && dart pub get | grep x")
    # ['cd /p', 'dart pub get', 'grep x']
    split_leading_cd("cd /p && dart pub get")
    # ('/p', 'dart pub get')
"""
import posixpath
import shlex
from dataclasses import dataclass
from enum import StrEnum
from typing import Optional


class CommandType(StrEnum):
    """Role of a segment within a compound command."""
    SIMPLE = "simple"
    CD = "cd"
    PIPELINE_PART = "pipeline_part"


@dataclass(frozen=True)
class ParsedCommand:
    """One top-level segment of a shell command."""
    command: str
    type: CommandType


@dataclass(frozen=True)
class _Segment:
    text: str
    sep_before: str
    sep_after: str
    end: int


def _scan(command: str) -> list[_Segment]:
    """
    Split a command into raw segments with the operators around them.

    Returns every segment, empty ones included; callers drop those.
    """
    segments: list[_Segment] = []
    buf: list[str] = []
    quote: Optional[str] = None
    sep_before = ""
    i = 0
    n = len(command)

    def flush(sep: str, end: int) -> None:
        nonlocal sep_before
        segments.append(_Segment("".join(buf).strip(), sep_before, sep, end))
        buf.clear()
        sep_before = sep

    while i < n:
        ch = command[i]

        if quote is not None:
            buf.append(ch)
            if ch == quote:
                quote = None
            elif ch == "\\" and quote == '"' and i + 1 < n:
                buf.append(command[i + 1])
                i += 1
            i += 1
            continue

        if ch == "\\" and i + 1 < n:
            buf.append(command[i:i + 2])
            i += 2
            continue

        if ch in ("'", '"'):
            quote = ch
            buf.append(ch)
            i += 1
            continue

        pair = command[i:i + 2]
        if pair in ("&&", "||"):
            flush(pair, i + 2)
            i += 2
            continue
        if pair == "|&":
            flush("|", i + 2)
            i += 2
            continue
        if ch in (";", "\n"):
            flush(";", i + 1)
            i += 1
            continue
        if ch == "|":
            flush("|", i + 1)
            i += 1
            continue
        if ch == "&":
            prev = command[i - 1] if i > 0 else ""
            nxt = command[i + 1] if i + 1 < n else ""
            # >&2, 2>&1, <&0 and &> are redirections
            if prev in ("<", ">") or nxt == ">":
                buf.append(ch)
                i += 1
                continue
            flush("&", i + 1)
            i += 1
            continue

        buf.append(ch)
        i += 1

    flush("", n)
    return segments


def _non_empty(command: str) -> list[_Segment]:
    return [s for s in _scan(command) if s.text]


def split_top_level(command: str) -> list[str]:
    """
    Split a command into its top-level segments.

    Args:
        command: Raw shell command.

    Returns:
        Stripped, non-empty segments in order. Empty input gives [].
    """
    return [s.text for s in _non_empty(command)]


def split_words(segment: str) -> list[str]:
    """
    Split a segment into shell words with quotes removed.

    Falls back to whitespace splitting when the quoting is unbalanced.
    """
    try:
        return shlex.split(segment)
    except ValueError:
        return segment.split()


def base_command(segment: str) -> str:
    """Return the first word of a segment, or "" for an empty one."""
    words = split_words(segment)
    return words[0] if words else ""


def is_cd_command(segment: str) -> bool:
    return base_command(segment) == "cd"


def parse_command(command: str) -> list[ParsedCommand]:
    """
    Split a command and tag every segment with its role.

    Args:
        command: Raw shell command.

    Returns:
        ParsedCommand list; pipe-connected segments are PIPELINE_PART,
        segments starting with cd are CD, the rest SIMPLE.
    """
    parsed: list[ParsedCommand] = []
    for seg in _non_empty(command):
        if is_cd_command(seg.text):
            kind = CommandType.CD
        elif "|" in (seg.sep_before, seg.sep_after):
            kind = CommandType.PIPELINE_PART
        else:
            kind = CommandType.SIMPLE
        parsed.append(ParsedCommand(command=seg.text, type=kind))
    return parsed


def is_pipeline(command: str) -> bool:
    """Return True if any top-level operator in the command is a pipe."""
    return any(s.sep_after == "|" for s in _scan(command))


def cd_target(segment: str) -> Optional[str]:
    """
    Return the directory argument of a cd segment.

    Returns:
        None if the segment is not a cd, "" for a bare cd (home directory),
        otherwise the target with quotes removed.
    """
    words = split_words(segment)
    if not words or words[0] != "cd":
        return None
    args = [w for w in words[1:] if w not in ("-L", "-P", "-e", "-@", "--")]
    return args[0] if args else ""


def split_leading_cd(command: str) -> tuple[Optional[str], Optional[str]]:
    """
    Separate a leading `cd <path>` from the rest of a command.

    Args:
        command: Raw shell command.

    Returns:
        (target, remainder) for `cd target && remainder`, (target, "") for a
        bare `cd target`, and (None, None) when the command does not start
        with cd.
    """
    segments = _non_empty(command)
    if not segments or not is_cd_command(segments[0].text):
        return None, None

    target = cd_target(segments[0].text) or ""
    remainder = command[segments[0].end:].strip()
    return target, remainder


def resolve_directory(target: str, working_dir: str) -> Optional[str]:
    """
    Lexically resolve a cd target against a working directory.

    Returns None for targets that cannot be resolved without a shell:
    home-relative paths, `cd -` and variable references.
    """
    if not target or target == "-" or target.startswith("~") or "$" in target:
        return None
    if posixpath.isabs(target):
        return posixpath.normpath(target)
    return posixpath.normpath(posixpath.join(working_dir, target))


def is_within_directory(path: str, directory: str) -> bool:
    """Return True if path equals directory or lies below it."""
    base = posixpath.normpath(directory)
    if path == base:
        return True
    return path.startswith(base.rstrip("/") + "/")


def is_cd_within_working_dir(segment: str, working_dir: str) -> bool:
    """
    Check that a cd segment stays at or below the working directory.

    Args:
        segment: A single segment such as "cd ../x".
        working_dir: Absolute working directory.

    Returns:
        False for non-cd segments, a bare cd, ~ targets, or any target that
        resolves outside working_dir.
    """
    if not working_dir:
        return False
    target = cd_target(segment)
    if not target:
        return False
    resolved = resolve_directory(target, posixpath.normpath(working_dir))
    if resolved is None:
        return False
    return is_within_directory(resolved, working_dir)


def has_command_substitution(segment: str) -> bool:
    """Return True if a segment runs nested commands ($(), backticks, <(), >())."""
    return any(token in segment for token in ("$(", "`", "<(", ">("))
