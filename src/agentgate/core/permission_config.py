"""
Permission settings and checker configuration for agentgate.

Provides:
- Pydantic models for the per-project settings file
  (<project>/.claude/settings.local.json)
- LocalSettingsManager with hot reload and atomic writes
- AskUserBehavior and PermissionCheckerConfig, with presets for
  interactive, REST and test deployments
"""
import json
import logging
import os
import tempfile
import threading
from enum import StrEnum
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..config import ConfigValidationError, load_gate_config
from .constants import (
    BLOCKED_TOOLS,
    DEFAULT_SAFE_FILTERS,
    INTERNAL_TOOL_PREFIXES,
    INTERNAL_TOOLS,
    SETTINGS_DIR_NAME,
    SETTINGS_FILE_NAME,
)
from .exceptions import SettingsError

logger = logging.getLogger(__name__)


class AskUserBehavior(StrEnum):
    """
    What happens when no rule decides a tool call.

    - ask: Hand the call to an interactive front-end.
    - deny: Block it (REST and other non-interactive deployments).
    - allow: Permit it (test harnesses only).
    """
    ASK = "ask"
    DENY = "deny"
    ALLOW = "allow"


class PermissionRules(BaseModel):
    """
    Permission rules for tool access.

    Supports rule strings such as:
    - Bash(git status) - Exactly this command
    - Bash(dart pub:*) - Any command starting with "dart pub"
    - Write(/proj/lib/**) - Any file below /proj/lib
    - WebFetch(domain:pub.dev) - pub.dev and its subdomains
    """
    model_config = ConfigDict(extra="allow", frozen=True)

    allow: list[str] = Field(
        default_factory=list,
        description="""
Rules whose matching tool calls run without a prompt."""
    )
    deny: list[str] = Field(
        default_factory=list,
        description="""
Rules whose matching tool calls are always blocked.
Deny rules take precedence over every allow mechanism."""
    )
    ask: list[str] = Field(
        default_factory=list,
        description="""
Rules whose matching tool calls always need approval,
even when the command would otherwise be auto-approved."""
    )

    @field_validator("allow", "deny", "ask", mode="before")
    @classmethod
    def convert_none_to_list(cls, v: Any) -> list[str]:
        """Convert None (empty JSON key) to empty list."""
        return [] if v is None else v


class LocalSettings(BaseModel):
    """
    Contents of <project>/.claude/settings.local.json.

    Only the permissions block is interpreted. Hooks and any other keys are
    kept as-is so that writing the file back never loses them.
    """
    model_config = ConfigDict(extra="allow", frozen=True)

    permissions: PermissionRules = Field(
        default_factory=PermissionRules,
        description="Allow/deny/ask rules for tool access"
    )
    hooks: dict[str, Any] = Field(
        default_factory=dict,
        description="Hook configuration, preserved but not interpreted"
    )

    @field_validator("permissions", "hooks", mode="before")
    @classmethod
    def convert_none_to_empty(cls, v: Any) -> Any:
        """Treat an explicit null section as absent."""
        return {} if v is None else v


class LocalSettingsManager:
    """
    Reads and updates the per-project settings file.

    Reads are cached against the file's mtime, size and inode, so an edit
    made by hand mid-session is seen on the next read. Writes go through a
    temporary file and os.replace, so concurrent readers see either the old
    or the new content, never a partial file.
    """

    def __init__(self, project_root: Union[Path, str]) -> None:
        """
        Initialize the settings manager.

        Args:
            project_root: Directory containing the .claude folder.
        """
        self._project_root = Path(project_root)
        self._lock = threading.Lock()
        self._settings: Optional[LocalSettings] = None
        self._stamp: Optional[tuple[int, int, int]] = None
        self.last_error: Optional[str] = None

    @property
    def project_root(self) -> Path:
        return self._project_root

    @property
    def settings_path(self) -> Path:
        return self._project_root / SETTINGS_DIR_NAME / SETTINGS_FILE_NAME

    def _current_stamp(self) -> Optional[tuple[int, int, int]]:
        try:
            stat = self.settings_path.stat()
        except FileNotFoundError:
            return None
        return (stat.st_mtime_ns, stat.st_size, stat.st_ino)

    def _needs_reload(self, stamp: tuple[int, int, int]) -> bool:
        """Check if the file changed since it was last parsed."""
        return self._settings is None or stamp != self._stamp

    def read_settings(self) -> LocalSettings:
        """
        Return the current settings.

        A missing file gives empty settings. An unreadable or invalid file
        also gives empty settings; the problem is logged and kept in
        last_error for the caller to surface.

        Returns:
            Parsed LocalSettings.
        """
        with self._lock:
            try:
                stamp = self._current_stamp()
            except OSError as e:
                self.last_error = f"Cannot stat {self.settings_path}: {e}"
                logger.error(self.last_error)
                return LocalSettings()

            if stamp is None:
                self._settings, self._stamp = None, None
                self.last_error = None
                return LocalSettings()

            if not self._needs_reload(stamp):
                return self._settings

            try:
                text = self.settings_path.read_text(encoding="utf-8")
                data = json.loads(text) if text.strip() else {}
                settings = LocalSettings.model_validate(data)
                self.last_error = None
                logger.info(f"Loaded permission settings from {self.settings_path}")
            except json.JSONDecodeError as e:
                self.last_error = f"Failed to parse {self.settings_path}: {e}"
                logger.error(self.last_error)
                settings = LocalSettings()
            except ValidationError as e:
                self.last_error = f"Invalid settings in {self.settings_path}: {e}"
                logger.error(self.last_error)
                settings = LocalSettings()
            except OSError as e:
                self.last_error = f"Failed to read {self.settings_path}: {e}"
                logger.error(self.last_error)
                settings = LocalSettings()

            self._settings, self._stamp = settings, stamp
            return settings

    def _read_raw(self) -> dict[str, Any]:
        path = self.settings_path
        if not path.exists():
            return {}
        try:
            text = path.read_text(encoding="utf-8")
            data = json.loads(text) if text.strip() else {}
        except (OSError, json.JSONDecodeError) as e:
            raise SettingsError(f"Cannot update {path}: {e}") from e
        if not isinstance(data, dict):
            raise SettingsError(f"Cannot update {path}: top level is not an object")
        return data

    def _write_raw(self, data: dict[str, Any]) -> None:
        path = self.settings_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
            )
        except OSError as e:
            raise SettingsError(f"Failed to write {path}: {e}") from e

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.write("\n")
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise SettingsError(f"Failed to write {path}: {e}") from e

        self._settings, self._stamp = None, None

    def write_settings(self, settings: LocalSettings) -> None:
        """
        Replace the settings file with the given settings.

        Raises:
            SettingsError: If the file cannot be written.
        """
        with self._lock:
            self._write_raw(settings.model_dump(mode="json"))
        logger.info(f"Saved permission settings to {self.settings_path}")

    def add_to_allow_list(self, pattern: str) -> bool:
        """
        Append a rule to permissions.allow.

        Every other key in the file is preserved.

        Args:
            pattern: Rule to add.

        Returns:
            True if the rule was added, False if it was already present.

        Raises:
            SettingsError: If the file is malformed or cannot be written.
        """
        with self._lock:
            data = self._read_raw()
            permissions = data.setdefault("permissions", {})
            if not isinstance(permissions, dict):
                raise SettingsError(
                    f"Cannot update {self.settings_path}: 'permissions' is not an object"
                )
            allow = permissions.get("allow") or []
            if not isinstance(allow, list):
                raise SettingsError(
                    f"Cannot update {self.settings_path}: 'permissions.allow' is not a list"
                )
            if pattern in allow:
                logger.debug(f"Pattern already in allow list: {pattern}")
                return False

            permissions["allow"] = [*allow, pattern]
            self._write_raw(data)

        logger.info(f"Added {pattern} to allow list in {self.settings_path}")
        return True


class PermissionCheckerConfig(BaseModel):
    """
    Behaviour switches for PermissionChecker.

    Use the presets for the common deployments:
    - tui(): interactive front-end, undecided calls are asked
    - rest_api(): no human available, undecided calls are denied
    - testing(): settings and .gitignore ignored, undecided calls are allowed
    """
    model_config = ConfigDict(frozen=True)

    ask_user_behavior: AskUserBehavior = Field(
        default=AskUserBehavior.ASK,
        description="Outcome for tool calls that no rule decides"
    )
    enable_session_cache: bool = Field(
        default=True,
        description="Honour patterns remembered for this session"
    )
    load_settings: bool = Field(
        default=True,
        description="Read the project settings file on every check"
    )
    respect_gitignore: bool = Field(
        default=True,
        description="Deny Read calls for files ignored by the project .gitignore"
    )
    auto_approve_read_only: bool = Field(
        default=False,
        description="""
Approve Read, Grep and Glob calls without consulting the allow list.
The deny and ask lists still apply."""
    )
    internal_tool_prefixes: list[str] = Field(
        default_factory=lambda: list(INTERNAL_TOOL_PREFIXES),
        description="Tool name prefixes of MCP servers owned by the host application"
    )
    internal_tools: list[str] = Field(
        default_factory=lambda: sorted(INTERNAL_TOOLS),
        description="Meta tools that are always allowed"
    )
    blocked_tools: dict[str, str] = Field(
        default_factory=lambda: dict(BLOCKED_TOOLS),
        description="Tools that are always denied, mapped to the reported concern"
    )
    safe_filters: list[str] = Field(
        default_factory=lambda: sorted(DEFAULT_SAFE_FILTERS),
        description="""
Commands accepted on the receiving side of a pipe, both by the
safe-command classifier and by Bash allow/deny rules."""
    )

    @classmethod
    def tui(cls) -> "PermissionCheckerConfig":
        """Preset for an interactive terminal front-end."""
        return cls(ask_user_behavior=AskUserBehavior.ASK)

    @classmethod
    def rest_api(cls) -> "PermissionCheckerConfig":
        """Preset for non-interactive deployments."""
        return cls(ask_user_behavior=AskUserBehavior.DENY)

    @classmethod
    def testing(cls) -> "PermissionCheckerConfig":
        """Preset for test harnesses: no settings or .gitignore, nothing is asked."""
        return cls(
            ask_user_behavior=AskUserBehavior.ALLOW,
            load_settings=False,
            respect_gitignore=False,
        )

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "PermissionCheckerConfig":
        """
        Load the "checker" section of the gate configuration file.

        Args:
            config_path: YAML file. Defaults to config/agentgate.yaml.

        Returns:
            Validated configuration.

        Raises:
            ConfigNotFoundError: If the file does not exist.
            ConfigValidationError: If the section is malformed.
        """
        data = load_gate_config(config_path)
        section = data.get("checker") or {}
        if not isinstance(section, dict):
            raise ConfigValidationError("'checker' section must be a mapping")
        try:
            return cls.model_validate(section)
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid checker configuration: {e}") from e
