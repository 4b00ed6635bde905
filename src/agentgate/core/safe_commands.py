"""
Safe-command classifier for Bash tool calls.

Decides, without any user configuration, whether a shell command is
read-only enough to run without asking. The classifier is an allowlist:
every top-level segment must be individually safe, and a single vetoed
segment (output redirection, destructive command, in-place editing, a
writing git subcommand) makes the whole command unsafe.

Usage:
    from .safe_commands import is_safe_bash_command, is_command_safe

    is_command_safe("git status")                      # True
    is_command_safe("ls > out.txt")                    # False
    is_safe_bash_command(BashToolInput(command="cd sub && ls"),
                         {"cwd": "/project"})          # True
"""
import ipaddress
import logging
import re
from typing import Any, Iterable, Optional
from urllib.parse import urlparse

from .bash_parser import (
    CommandType,
    has_command_substitution,
    is_cd_command,
    is_cd_within_working_dir,
    parse_command,
    split_words,
)
from .constants import DEFAULT_SAFE_FILTERS, LOCALHOST_NAMES
from .tool_input import BashToolInput

logger = logging.getLogger(__name__)


# =============================================================================
# Allowlists
# =============================================================================

SAFE_COMMANDS: frozenset[str] = frozenset({
    # Listing and navigation
    "ls", "pwd", "tree", "which", "whereis", "whoami", "id", "hostname",
    "uname", "date", "basename", "dirname", "realpath", "readlink",
    # Reading
    "cat", "head", "tail", "less", "more",
    # Searching
    "find", "grep", "egrep", "fgrep", "rg",
    # Metadata
    "stat", "file", "wc", "du", "df", "diff", "cmp",
    # Processes
    "ps", "top", "htop",
    # Environment
    "printenv", "echo",
    # Text processing (write paths vetoed in has_dangerous_flags)
    "sort", "uniq", "cut", "awk", "sed", "jq", "tr", "column", "nl",
})

SAFE_GIT_SUBCOMMANDS: frozenset[str] = frozenset({
    "status",
    "log",
    "diff",
    "show",
    "rev-parse",
    "describe",
    "ls-files",
    "ls-tree",
    "ls-remote",
    "blame",
    "shortlog",
    "reflog",
    "cat-file",
    "rev-list",
    "grep",
})

# Subcommands that only list when every argument is one of these flags
_GIT_LISTING_FLAGS: dict[str, frozenset[str]] = {
    "branch": frozenset({
        "-a", "--all", "-r", "--remotes", "-v", "-vv", "--verbose",
        "--list", "-l", "--show-current", "--color", "--no-color",
    }),
    "tag": frozenset({"-l", "--list", "-n"}),
    "remote": frozenset({"-v", "--verbose"}),
}

_GIT_CONFIG_READ_FLAGS: frozenset[str] = frozenset({
    "--get", "--get-all", "--get-regexp", "--list", "-l",
})

_GIT_CONFIG_WRITE_FLAGS: frozenset[str] = frozenset({
    "--unset", "--unset-all", "--add", "--replace-all",
    "--rename-section", "--remove-section", "--edit", "-e",
})

WRITING_GIT_SUBCOMMANDS: frozenset[str] = frozenset({
    "add", "am", "apply", "checkout", "cherry-pick", "clean", "clone",
    "commit", "fetch", "filter-branch", "gc", "init", "merge", "mv",
    "prune", "pull", "push", "rebase", "reset", "restore", "revert", "rm",
    "stash", "submodule", "switch", "update-ref", "worktree",
})

# Arguments that turn an otherwise safe git subcommand into a write
_GIT_WRITE_ARGS: dict[str, frozenset[str]] = {
    "reflog": frozenset({"expire", "delete"}),
}

SAFE_PACKAGE_MANAGER_SUBCOMMANDS: dict[str, frozenset[str]] = {
    "npm": frozenset({
        "list", "ls", "view", "show", "info", "search", "outdated",
        "doctor", "help", "explain", "why",
    }),
    "yarn": frozenset({"list", "info", "why", "outdated"}),
    "pnpm": frozenset({"list", "ls", "why", "outdated"}),
    "pip": frozenset({"list", "show", "search", "check", "freeze", "help"}),
    "pip3": frozenset({"list", "show", "search", "check", "freeze", "help"}),
    "dart": frozenset({"analyze", "info", "pub", "help"}),
    "flutter": frozenset({"analyze", "doctor", "devices", "pub"}),
    "cargo": frozenset({"tree", "metadata", "search"}),
    "go": frozenset({"version", "list", "doc"}),
    "uv": frozenset({"pip", "tree"}),
    "poetry": frozenset({"show", "check", "env"}),
}

# Second-level subcommands for managers whose first level mixes reads and writes
_NESTED_SUBCOMMANDS: dict[tuple[str, str], frozenset[str]] = {
    ("dart", "pub"): frozenset({"deps", "outdated"}),
    ("flutter", "pub"): frozenset({"deps", "outdated"}),
    ("uv", "pip"): frozenset({"list", "show", "freeze", "check"}),
    ("poetry", "env"): frozenset({"info", "list"}),
}

# Runtimes and package managers that are safe when only asked for their version
LANGUAGE_TOOLS: frozenset[str] = frozenset({
    "python", "python3", "node", "deno", "bun", "ruby", "java", "rustc",
    "go", "dart", "flutter", "cargo", "npm", "yarn", "pnpm", "pip", "pip3",
    "uv", "poetry",
})

VERSION_FLAGS: frozenset[str] = frozenset({"--version", "-V", "--help", "-h"})


# =============================================================================
# Vetoes
# =============================================================================

DESTRUCTIVE_COMMANDS: frozenset[str] = frozenset({
    "rm", "rmdir", "dd", "shred", "mkfs", "fdisk", "sudo", "su", "doas",
    "chmod", "chown", "chgrp", "truncate",
})

# Commands that run another command given as their arguments
COMMAND_WRAPPERS: frozenset[str] = frozenset({
    "xargs", "env", "exec", "nice", "nohup", "time", "timeout", "watch",
    "command", "builtin",
})

_FIND_DANGEROUS_FLAGS: frozenset[str] = frozenset({
    "-delete", "-exec", "-execdir", "-ok", "-okdir",
    "-fprint", "-fprint0", "-fprintf", "-fls",
})

# Redirections that cannot create or overwrite files
_HARMLESS_REDIRECTION = re.compile(
    r"(?:\d|&)?>>?\s*/dev/null(?![\w/.-])|\d?>&\d"
)

# sed w/W write a file, e executes a command
_SED_SCRIPT_SIDE_EFFECT = re.compile(
    r"(?:^|[;{}\n0-9$]|/[gpIiMm0-9]*)\s*[wWe](?:\s|$)"
)

_CURL_VALUE_OPTIONS: frozenset[str] = frozenset({
    "-X", "--request", "-H", "--header", "-d", "--data", "--data-raw",
    "--data-binary", "--data-urlencode", "--json", "-u", "--user",
    "-A", "--user-agent", "-e", "--referer", "-m", "--max-time",
    "--connect-timeout", "-w", "--write-out", "-b", "--cookie",
    "--retry", "-r", "--range",
})

_CURL_WRITE_OPTIONS: frozenset[str] = frozenset({
    "-o", "--output", "-O", "--remote-name", "--remote-name-all",
    "--output-dir", "-c", "--cookie-jar", "-D", "--dump-header",
    "-x", "--proxy", "-T", "--upload-file", "-K", "--config",
    "--trace", "--trace-ascii", "--libcurl", "--stderr", "--etag-save",
    "--hsts", "--alt-svc",
})

_CURL_WRITE_SHORT = frozenset("oOcDxTK")

_WGET_VALUE_OPTIONS: frozenset[str] = frozenset({
    "-O", "--output-document", "--header", "-U", "--user-agent",
    "-T", "--timeout", "-t", "--tries", "--method", "--body-data",
    "--post-data",
})

_WGET_WRITE_OPTIONS: frozenset[str] = frozenset({
    "-o", "--output-file", "-a", "--append-output", "-P",
    "--directory-prefix", "-e", "--execute", "-i", "--input-file",
    "-x", "--force-directories", "-r", "--recursive", "-m", "--mirror",
    "--save-cookies", "--post-file", "--body-file",
})

_WGET_WRITE_SHORT = frozenset("oaPeixrm")


def has_output_redirection(segment: str) -> bool:
    """
    Return True if a segment redirects output into a file.

    Redirections to /dev/null and descriptor duplication (2>&1) are allowed.
    """
    return ">" in _HARMLESS_REDIRECTION.sub(" ", segment)


def _command_positions(words: list[str]) -> list[str]:
    """Return the words that name a command to run, following wrappers."""
    commands: list[str] = []
    expect_command = True
    for word in words:
        if not expect_command:
            continue
        if commands and (
            word.startswith("-")
            or re.fullmatch(r"[\d.]+[smhd]?", word)
            or (commands[-1] == "env" and "=" in word)
        ):
            # Options, durations and assignments belong to the wrapper
            continue
        commands.append(word)
        expect_command = word in COMMAND_WRAPPERS
    return commands


def _is_destructive(name: str) -> bool:
    return name in DESTRUCTIVE_COMMANDS or name.startswith("mkfs")


def _sed_writes(args: list[str]) -> bool:
    for arg in args:
        if arg.startswith("--in-place"):
            return True
        if arg.startswith("-") and not arg.startswith("--") and "i" in arg[1:]:
            return True
        if not arg.startswith("-") and _SED_SCRIPT_SIDE_EFFECT.search(arg):
            return True
    return False


def _git_writes(words: list[str]) -> bool:
    for index, word in enumerate(words):
        if word != "git" or index + 1 >= len(words):
            continue
        subcommand = words[index + 1]
        if subcommand == "stash" and words[index + 2:index + 3] in (["list"], ["show"]):
            continue
        if subcommand in WRITING_GIT_SUBCOMMANDS:
            return True
        write_args = _GIT_WRITE_ARGS.get(subcommand)
        if write_args and any(arg in write_args for arg in words[index + 2:]):
            return True
    return any(word.startswith("--output") for word in words)


def _git_grep_runs_pager(words: list[str]) -> bool:
    for index, word in enumerate(words[:-1]):
        if word != "git" or words[index + 1] != "grep":
            continue
        for arg in words[index + 2:]:
            if arg.startswith("--open-files-in-pager"):
                return True
            # -O takes its pager command attached, e.g. -Ovim
            if arg.startswith("-") and not arg.startswith("--") and "O" in arg[1:]:
                return True
    return False


def has_dangerous_flags(segment: str) -> bool:
    """
    Check a single segment against the veto rules.

    A vetoed segment is unsafe whatever its base command is.

    Args:
        segment: One top-level command segment.

    Returns:
        True if the segment writes files, runs nested commands, or invokes
        a destructive or privilege-changing command.
    """
    if has_output_redirection(segment) or has_command_substitution(segment):
        return True

    words = split_words(segment)
    if not words:
        return False

    commands = _command_positions(words)
    if any(_is_destructive(name) for name in commands):
        return True

    name, args = words[0], words[1:]
    if name == "find" and any(arg in _FIND_DANGEROUS_FLAGS for arg in args):
        return True
    if name == "sed" and _sed_writes(args):
        return True
    if name == "sort" and any(
        arg == "-o" or arg.startswith("--output") or (arg.startswith("-o") and len(arg) > 2)
        for arg in args
    ):
        return True
    if name == "uniq" and len([a for a in args if not a.startswith("-")]) > 1:
        return True
    if name == "awk" and any("system(" in arg or "|" in arg for arg in args):
        return True
    if name == "rg" and any(arg == "--pre" or arg.startswith("--pre=") for arg in args):
        return True
    if name == "tree" and any(arg.startswith("-o") for arg in args):
        return True
    if "git" in commands and (_git_writes(words) or _git_grep_runs_pager(words)):
        return True
    return False


# =============================================================================
# Subcommand checks
# =============================================================================

def is_safe_git_command(segment: str) -> bool:
    """
    Return True for read-only git invocations.

    Args:
        segment: A single git command such as "git log --oneline".
    """
    words = split_words(segment)
    if len(words) < 2 or words[0] != "git":
        return False

    subcommand, args = words[1], words[2:]
    if subcommand.startswith("-"):
        # Global options such as -C move the command elsewhere
        return subcommand in ("--version", "--help") and not args

    write_args = _GIT_WRITE_ARGS.get(subcommand)
    if write_args and any(arg in write_args for arg in args):
        return False
    if subcommand == "grep" and _git_grep_runs_pager(words):
        return False
    if subcommand in SAFE_GIT_SUBCOMMANDS:
        return not any(arg.startswith("--output") for arg in args)

    listing_flags = _GIT_LISTING_FLAGS.get(subcommand)
    if listing_flags is not None:
        return all(arg in listing_flags for arg in args)

    if subcommand == "config":
        return (
            any(arg in _GIT_CONFIG_READ_FLAGS for arg in args)
            and not any(arg in _GIT_CONFIG_WRITE_FLAGS for arg in args)
        )
    if subcommand == "stash":
        return bool(args) and args[0] in ("list", "show")
    return False


def is_safe_package_manager_command(segment: str) -> bool:
    """
    Return True for package-manager or runtime introspection.

    Covers `<tool> --version` style queries and read-only subcommands such
    as `npm ls`, `pip show x` or `dart pub deps`.
    """
    words = split_words(segment)
    if not words:
        return False

    tool, args = words[0], words[1:]
    if tool in LANGUAGE_TOOLS and len(args) == 1 and args[0] in VERSION_FLAGS:
        return True

    safe_subcommands = SAFE_PACKAGE_MANAGER_SUBCOMMANDS.get(tool)
    if not safe_subcommands or not args or args[0] not in safe_subcommands:
        return False

    nested = _NESTED_SUBCOMMANDS.get((tool, args[0]))
    if nested is not None:
        return len(args) >= 2 and args[1] in nested
    return True


def _is_loopback_url(target: str) -> bool:
    url = target if "://" in target else f"http://{target}"
    try:
        parsed = urlparse(url)
        host = parsed.hostname
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not host:
        return False
    if host in LOCALHOST_NAMES or host.endswith(".localhost"):
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def is_localhost_network_command(segment: str) -> bool:
    """
    Return True for curl/wget calls that only talk to this machine.

    Every URL must be loopback, no option may write a local file or route
    through a proxy, and wget must print to stdout (-O -) or use --spider.

    Args:
        segment: A single curl or wget command.
    """
    words = split_words(segment)
    if not words or words[0] not in ("curl", "wget"):
        return False

    tool = words[0]
    if tool == "curl":
        value_options, write_options, write_short = (
            _CURL_VALUE_OPTIONS, _CURL_WRITE_OPTIONS, _CURL_WRITE_SHORT,
        )
    else:
        value_options, write_options, write_short = (
            _WGET_VALUE_OPTIONS, _WGET_WRITE_OPTIONS, _WGET_WRITE_SHORT,
        )

    urls: list[str] = []
    to_stdout = tool == "curl"
    i = 1
    while i < len(words):
        word = words[i]
        option, has_inline_value, inline_value = word, False, ""
        if word.startswith("--") and "=" in word:
            option, inline_value = word.split("=", 1)
            has_inline_value = True

        if option in write_options:
            return False

        if option in value_options:
            value = inline_value
            if not has_inline_value:
                value = words[i + 1] if i + 1 < len(words) else ""
                i += 1
            if tool == "wget" and option in ("-O", "--output-document"):
                if value != "-":
                    return False
                to_stdout = True
            i += 1
            continue

        if word.startswith("-") and not word.startswith("--") and len(word) > 1:
            cluster = word[1:]
            if tool == "wget" and "O" in cluster:
                attached = cluster.split("O", 1)[1]
                if attached == "":
                    attached = words[i + 1] if i + 1 < len(words) else ""
                    i += 1
                if attached != "-":
                    return False
                to_stdout = True
                cluster = cluster.split("O", 1)[0]
            if any(c in write_short for c in cluster):
                return False
            i += 1
            continue

        if word == "--spider":
            to_stdout = True
        elif not word.startswith("-"):
            urls.append(word)
        i += 1

    if not urls or not to_stdout:
        return False
    return all(_is_loopback_url(url) for url in urls)


# =============================================================================
# Public classifier
# =============================================================================

def is_command_safe(
    segment: str,
    cwd: Optional[str] = None,
    pipeline_part: bool = False,
    safe_filters: Optional[Iterable[str]] = None,
) -> bool:
    """
    Classify one top-level segment.

    Args:
        segment: A single command without control operators.
        cwd: Working directory used to validate cd targets.
        pipeline_part: Whether the segment is connected by a pipe.
        safe_filters: Extra commands accepted on the receiving side of a pipe.

    Returns:
        True if the segment is read-only.
    """
    segment = segment.strip()
    if not segment:
        return False

    if is_cd_command(segment):
        return bool(cwd) and is_cd_within_working_dir(segment, cwd)

    if has_dangerous_flags(segment):
        return False

    words = split_words(segment)
    if not words:
        return False
    name, args = words[0], words[1:]

    if name == "git":
        return is_safe_git_command(segment)
    if name in ("curl", "wget"):
        return is_localhost_network_command(segment)
    if name in SAFE_PACKAGE_MANAGER_SUBCOMMANDS or name in LANGUAGE_TOOLS:
        return is_safe_package_manager_command(segment)
    if name == "env":
        # env followed by a command runs that command
        return all(arg in ("-0", "--null") for arg in args)
    if name in SAFE_COMMANDS:
        return True
    if pipeline_part and safe_filters is not None:
        return name in set(safe_filters)
    return False


def is_safe_bash_command(
    tool_input: Any,
    context: Optional[dict[str, str]] = None,
    safe_filters: Optional[Iterable[str]] = None,
) -> bool:
    """
    Decide whether a Bash tool call can run without approval.

    Args:
        tool_input: BashToolInput; anything else is unsafe.
        context: Optional mapping with "cwd".
        safe_filters: Commands accepted on the receiving side of a pipe.
            Defaults to DEFAULT_SAFE_FILTERS.

    Returns:
        True only if every segment of the command is safe.
    """
    if not isinstance(tool_input, BashToolInput):
        return False
    command = tool_input.command
    if not command.strip():
        return False

    cwd = (context or {}).get("cwd")
    filters = frozenset(safe_filters) if safe_filters is not None else DEFAULT_SAFE_FILTERS

    for part in parse_command(command):
        if not is_command_safe(
            part.command,
            cwd=cwd,
            pipeline_part=part.type == CommandType.PIPELINE_PART,
            safe_filters=filters,
        ):
            logger.debug(f"Unsafe segment: {part.command!r}")
            return False
    return True
