"""
Typed tool inputs.

Agents send tool calls as a tool name plus an untyped argument map. This
module turns that pair into one immutable variant per tool family so the
matcher and the safe-command classifier work with real fields.

Malformed maps never raise: a missing or wrongly typed field becomes an
empty string (or None / False), which every consumer treats as "no match"
or "unsafe".

Usage:
    from .tool_input import parse_tool_input, BashToolInput

    tool_input = parse_tool_input("Bash", {"command": "ls -la"})
    if isinstance(tool_input, BashToolInput):
        print(tool_input.command)
"""
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Optional, Union


def _str(raw: dict[str, Any], key: str) -> str:
    value = raw.get(key)
    return value if isinstance(value, str) else ""


def _int(raw: dict[str, Any], key: str) -> Optional[int]:
    value = raw.get(key)
    # bool is an int subclass but never a valid count
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


@dataclass(frozen=True)
class _ToolInputBase:
    """Shared behaviour of the typed variants."""

    tool_name: ClassVar[str] = ""

    def to_dict(self) -> dict[str, Any]:
        """
        Return the argument map in the agent's wire naming.

        Returns:
            Dictionary without unset optional fields.
        """
        result: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, tuple):
                value = [dict(item) for item in value]
            result[f.name] = value
        return result


@dataclass(frozen=True)
class BashToolInput(_ToolInputBase):
    tool_name: ClassVar[str] = "Bash"

    command: str = ""
    description: str = ""
    timeout: Optional[int] = None


@dataclass(frozen=True)
class ReadToolInput(_ToolInputBase):
    tool_name: ClassVar[str] = "Read"

    file_path: str = ""
    offset: Optional[int] = None
    limit: Optional[int] = None


@dataclass(frozen=True)
class WriteToolInput(_ToolInputBase):
    tool_name: ClassVar[str] = "Write"

    file_path: str = ""
    content: str = ""


@dataclass(frozen=True)
class EditToolInput(_ToolInputBase):
    tool_name: ClassVar[str] = "Edit"

    file_path: str = ""
    old_string: str = ""
    new_string: str = ""
    replace_all: bool = False


@dataclass(frozen=True)
class MultiEditToolInput(_ToolInputBase):
    tool_name: ClassVar[str] = "MultiEdit"

    file_path: str = ""
    edits: tuple[dict[str, Any], ...] = ()


@dataclass(frozen=True)
class WebFetchToolInput(_ToolInputBase):
    tool_name: ClassVar[str] = "WebFetch"

    url: str = ""
    prompt: str = ""


@dataclass(frozen=True)
class WebSearchToolInput(_ToolInputBase):
    tool_name: ClassVar[str] = "WebSearch"

    query: str = ""


@dataclass(frozen=True)
class GrepToolInput(_ToolInputBase):
    tool_name: ClassVar[str] = "Grep"

    pattern: str = ""
    path: str = ""
    glob: str = ""


@dataclass(frozen=True)
class GlobToolInput(_ToolInputBase):
    tool_name: ClassVar[str] = "Glob"

    pattern: str = ""
    path: str = ""


@dataclass(frozen=True)
class UnknownToolInput:
    """Any tool without a typed variant, MCP tools included."""

    tool_name: str
    raw: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return dict(self.raw)


ToolInput = Union[
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
]


def _parse_bash(raw: dict[str, Any]) -> BashToolInput:
    return BashToolInput(
        command=_str(raw, "command"),
        description=_str(raw, "description"),
        timeout=_int(raw, "timeout"),
    )


def _parse_read(raw: dict[str, Any]) -> ReadToolInput:
    return ReadToolInput(
        file_path=_str(raw, "file_path"),
        offset=_int(raw, "offset"),
        limit=_int(raw, "limit"),
    )


def _parse_write(raw: dict[str, Any]) -> WriteToolInput:
    return WriteToolInput(
        file_path=_str(raw, "file_path"),
        content=_str(raw, "content"),
    )


def _parse_edit(raw: dict[str, Any]) -> EditToolInput:
    return EditToolInput(
        file_path=_str(raw, "file_path"),
        old_string=_str(raw, "old_string"),
        new_string=_str(raw, "new_string"),
        replace_all=raw.get("replace_all") is True,
    )


def _parse_multi_edit(raw: dict[str, Any]) -> MultiEditToolInput:
    edits = raw.get("edits")
    if not isinstance(edits, list):
        edits = []
    return MultiEditToolInput(
        file_path=_str(raw, "file_path"),
        edits=tuple(dict(e) for e in edits if isinstance(e, dict)),
    )


def _parse_web_fetch(raw: dict[str, Any]) -> WebFetchToolInput:
    return WebFetchToolInput(url=_str(raw, "url"), prompt=_str(raw, "prompt"))


def _parse_web_search(raw: dict[str, Any]) -> WebSearchToolInput:
    return WebSearchToolInput(query=_str(raw, "query"))


def _parse_grep(raw: dict[str, Any]) -> GrepToolInput:
    return GrepToolInput(
        pattern=_str(raw, "pattern"),
        path=_str(raw, "path"),
        glob=_str(raw, "glob"),
    )


def _parse_glob(raw: dict[str, Any]) -> GlobToolInput:
    return GlobToolInput(pattern=_str(raw, "pattern"), path=_str(raw, "path"))


_PARSERS = {
    "Bash": _parse_bash,
    "Read": _parse_read,
    "Write": _parse_write,
    "Edit": _parse_edit,
    "MultiEdit": _parse_multi_edit,
    "WebFetch": _parse_web_fetch,
    "WebSearch": _parse_web_search,
    "Grep": _parse_grep,
    "Glob": _parse_glob,
}


def parse_tool_input(tool_name: str, raw: Optional[dict[str, Any]]) -> ToolInput:
    """
    Build the typed input for a tool call.

    The variant is decided by tool_name alone; unmapped names become
    UnknownToolInput carrying a copy of the raw map.

    Args:
        tool_name: Tool name as reported by the agent.
        raw: Argument map (None is treated as empty).

    Returns:
        Immutable ToolInput variant.
    """
    if not isinstance(raw, dict):
        raw = {}
    parser = _PARSERS.get(tool_name)
    if parser is None:
        return UnknownToolInput(tool_name=tool_name, raw=dict(raw))
    return parser(raw)


def file_path_of(tool_input: ToolInput) -> Optional[str]:
    """Return the file path of a file-tool input, or None for other tools."""
    if isinstance(
        tool_input,
        (ReadToolInput, WriteToolInput, EditToolInput, MultiEditToolInput),
    ):
        return tool_input.file_path
    return None
