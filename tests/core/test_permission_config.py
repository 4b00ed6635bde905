"""
Tests for the settings file manager and checker configuration.
"""
import json
import os
from pathlib import Path
from typing import Any, Callable

import pytest
from pydantic import ValidationError

from agentgate.config import ConfigNotFoundError, ConfigValidationError, load_gate_config
from agentgate.core.exceptions import SettingsError
from agentgate.core.permission_config import (
    AskUserBehavior,
    LocalSettings,
    LocalSettingsManager,
    PermissionCheckerConfig,
    PermissionRules,
)


@pytest.mark.unit
class TestModels:
    """Tests for the pydantic settings models."""

    def test_null_lists_become_empty(self) -> None:
        rules = PermissionRules.model_validate({"allow": None, "deny": ["Bash(rm:*)"]})
        assert rules.allow == []
        assert rules.deny == ["Bash(rm:*)"]
        assert rules.ask == []

    def test_unknown_keys_are_kept(self) -> None:
        settings = LocalSettings.model_validate({
            "permissions": {"allow": ["Read"], "defaultMode": "plan"},
            "env": {"A": "1"},
        })
        dumped = settings.model_dump()
        assert dumped["env"] == {"A": "1"}
        assert dumped["permissions"]["defaultMode"] == "plan"

    def test_null_permissions_section(self) -> None:
        settings = LocalSettings.model_validate({"permissions": None, "hooks": None})
        assert settings.permissions.allow == []
        assert settings.hooks == {}


@pytest.mark.integration
class TestLocalSettingsManager:
    """Tests for reading, reloading and updating settings.local.json."""

    def test_missing_file_gives_empty_settings(self, project_dir: Path) -> None:
        manager = LocalSettingsManager(project_dir)
        settings = manager.read_settings()

        assert settings.permissions.allow == []
        assert manager.last_error is None
        assert manager.settings_path == project_dir / ".claude" / "settings.local.json"

    def test_reads_rules(
        self, project_dir: Path, write_settings: Callable[[dict[str, Any]], Path]
    ) -> None:
        write_settings({"permissions": {"allow": ["Bash(npm test:*)"], "deny": ["Read(/etc/**)"]}})

        settings = LocalSettingsManager(project_dir).read_settings()

        assert settings.permissions.allow == ["Bash(npm test:*)"]
        assert settings.permissions.deny == ["Read(/etc/**)"]

    def test_hot_reload_after_external_edit(
        self, project_dir: Path, write_settings: Callable[[dict[str, Any]], Path]
    ) -> None:
        path = write_settings({"permissions": {"allow": ["Read"]}})
        manager = LocalSettingsManager(project_dir)
        assert manager.read_settings().permissions.allow == ["Read"]

        path.write_text(json.dumps({"permissions": {"allow": ["Read", "Bash(ls:*)"]}}))
        stat = path.stat()
        os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))

        assert manager.read_settings().permissions.allow == ["Read", "Bash(ls:*)"]

    def test_cached_when_unchanged(
        self, project_dir: Path, write_settings: Callable[[dict[str, Any]], Path]
    ) -> None:
        write_settings({"permissions": {"allow": ["Read"]}})
        manager = LocalSettingsManager(project_dir)

        assert manager.read_settings() is manager.read_settings()

    def test_deleted_file_gives_empty_settings(
        self, project_dir: Path, write_settings: Callable[[dict[str, Any]], Path]
    ) -> None:
        path = write_settings({"permissions": {"allow": ["Read"]}})
        manager = LocalSettingsManager(project_dir)
        manager.read_settings()

        path.unlink()

        assert manager.read_settings().permissions.allow == []

    def test_invalid_json_is_reported(self, project_dir: Path) -> None:
        path = project_dir / ".claude" / "settings.local.json"
        path.parent.mkdir()
        path.write_text("{ not json")
        manager = LocalSettingsManager(project_dir)

        settings = manager.read_settings()

        assert settings.permissions.allow == []
        assert manager.last_error is not None
        assert "Failed to parse" in manager.last_error

    def test_invalid_schema_is_reported(
        self, project_dir: Path, write_settings: Callable[[dict[str, Any]], Path]
    ) -> None:
        write_settings({"permissions": {"allow": "Bash(*)"}})
        manager = LocalSettingsManager(project_dir)

        assert manager.read_settings().permissions.allow == []
        assert "Invalid settings" in manager.last_error

    def test_add_to_allow_list_creates_file(self, project_dir: Path) -> None:
        manager = LocalSettingsManager(project_dir)

        assert manager.add_to_allow_list("Bash(npm test:*)") is True

        data = json.loads(manager.settings_path.read_text())
        assert data == {"permissions": {"allow": ["Bash(npm test:*)"]}}
        assert manager.read_settings().permissions.allow == ["Bash(npm test:*)"]

    def test_add_to_allow_list_preserves_other_keys(
        self, project_dir: Path, write_settings: Callable[[dict[str, Any]], Path]
    ) -> None:
        hooks = {"PreToolUse": [{"matcher": "Bash", "hooks": [{"type": "command", "command": "x"}]}]}
        write_settings({
            "permissions": {"allow": ["Read"], "deny": ["Bash(rm:*)"]},
            "hooks": hooks,
            "model": "opus",
        })
        manager = LocalSettingsManager(project_dir)

        manager.add_to_allow_list("Write(/p/**)")

        data = json.loads(manager.settings_path.read_text())
        assert data["permissions"]["allow"] == ["Read", "Write(/p/**)"]
        assert data["permissions"]["deny"] == ["Bash(rm:*)"]
        assert data["hooks"] == hooks
        assert data["model"] == "opus"

    def test_add_to_allow_list_skips_duplicates(
        self, project_dir: Path, write_settings: Callable[[dict[str, Any]], Path]
    ) -> None:
        write_settings({"permissions": {"allow": ["Read"]}})
        manager = LocalSettingsManager(project_dir)

        assert manager.add_to_allow_list("Read") is False
        assert json.loads(manager.settings_path.read_text())["permissions"]["allow"] == ["Read"]

    def test_add_to_allow_list_leaves_no_temp_files(self, project_dir: Path) -> None:
        manager = LocalSettingsManager(project_dir)
        manager.add_to_allow_list("Read")
        manager.add_to_allow_list("Glob")

        assert sorted(p.name for p in manager.settings_path.parent.iterdir()) == [
            "settings.local.json"
        ]

    def test_add_to_malformed_file_raises(self, project_dir: Path) -> None:
        path = project_dir / ".claude" / "settings.local.json"
        path.parent.mkdir()
        path.write_text("[1, 2]")

        with pytest.raises(SettingsError):
            LocalSettingsManager(project_dir).add_to_allow_list("Read")

        assert path.read_text() == "[1, 2]"

    def test_write_settings(self, project_dir: Path) -> None:
        manager = LocalSettingsManager(project_dir)
        manager.write_settings(LocalSettings(permissions=PermissionRules(deny=["Bash(rm:*)"])))

        assert manager.read_settings().permissions.deny == ["Bash(rm:*)"]


@pytest.mark.unit
class TestPermissionCheckerConfig:
    """Tests for presets and YAML loading."""

    def test_defaults(self) -> None:
        config = PermissionCheckerConfig()
        assert config.ask_user_behavior == AskUserBehavior.ASK
        assert config.enable_session_cache is True
        assert config.auto_approve_read_only is False
        assert config.respect_gitignore is True
        assert "jq" in config.safe_filters
        assert "tee" not in config.safe_filters

    def test_presets(self) -> None:
        assert PermissionCheckerConfig.tui().ask_user_behavior == AskUserBehavior.ASK
        assert PermissionCheckerConfig.rest_api().ask_user_behavior == AskUserBehavior.DENY
        testing = PermissionCheckerConfig.testing()
        assert testing.ask_user_behavior == AskUserBehavior.ALLOW
        assert testing.load_settings is False
        assert testing.respect_gitignore is False

    def test_frozen(self) -> None:
        config = PermissionCheckerConfig()
        with pytest.raises(ValidationError):
            config.load_settings = False

    def test_from_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "gate.yaml"
        path.write_text(
            "checker:\n"
            "  ask_user_behavior: deny\n"
            "  auto_approve_read_only: true\n"
            "  safe_filters: [grep, yq]\n"
        )

        config = PermissionCheckerConfig.from_yaml(path)

        assert config.ask_user_behavior == AskUserBehavior.DENY
        assert config.auto_approve_read_only is True
        assert config.safe_filters == ["grep", "yq"]

    def test_from_yaml_without_section_uses_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "gate.yaml"
        path.write_text("other: 1\n")

        assert PermissionCheckerConfig.from_yaml(path) == PermissionCheckerConfig()

    def test_from_yaml_invalid_value(self, tmp_path: Path) -> None:
        path = tmp_path / "gate.yaml"
        path.write_text("checker:\n  ask_user_behavior: sometimes\n")

        with pytest.raises(ConfigValidationError):
            PermissionCheckerConfig.from_yaml(path)

    def test_from_yaml_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigNotFoundError):
            PermissionCheckerConfig.from_yaml(tmp_path / "missing.yaml")

    def test_bundled_config_loads(self) -> None:
        config = PermissionCheckerConfig.from_yaml()
        assert config.ask_user_behavior == AskUserBehavior.ASK

    @pytest.mark.parametrize("content", ["", "- a\n- b\n", "checker: [\n"])
    def test_load_gate_config_rejects_bad_files(self, tmp_path: Path, content: str) -> None:
        path = tmp_path / "gate.yaml"
        path.write_text(content)

        with pytest.raises(ConfigValidationError):
            load_gate_config(path)
