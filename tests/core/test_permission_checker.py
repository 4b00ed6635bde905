"""
Tests for the layered permission decision engine.
"""
import threading
from pathlib import Path
from typing import Any, Callable

import pytest

from agentgate.core.constants import (
    REASON_ASK_AUTO_ALLOWED,
    REASON_ASK_DENIED,
    REASON_GITIGNORE,
    REASON_INTERNAL_TOOL,
    REASON_SAFE_COMMAND,
    REASON_SESSION_CACHE,
)
from agentgate.core.permission_checker import (
    PermissionAllow,
    PermissionAskUser,
    PermissionChecker,
    PermissionDeny,
    SessionPatternCache,
)
from agentgate.core.permission_config import AskUserBehavior, PermissionCheckerConfig
from agentgate.core.tool_input import BashToolInput, ReadToolInput, WriteToolInput

WriteSettings = Callable[[dict[str, Any]], Path]


@pytest.mark.unit
class TestScenarios:
    """End-to-end decisions for common tool calls."""

    def test_safe_command_is_allowed(self, checker: PermissionChecker, project_dir: Path) -> None:
        result = checker.check_permission("Bash", {"command": "ls -la"}, str(project_dir))

        assert isinstance(result, PermissionAllow)
        assert "safe" in result.reason
        assert result.reason == REASON_SAFE_COMMAND

    def test_deny_beats_allow(
        self, checker: PermissionChecker, project_dir: Path, write_settings: WriteSettings
    ) -> None:
        write_settings({"permissions": {"allow": ["Bash(*)"], "deny": ["Bash(rm:*)"]}})

        result = checker.check_permission("Bash", {"command": "rm -rf /"}, str(project_dir))

        assert isinstance(result, PermissionDeny)
        assert "Bash(rm:*)" in result.reason

    @pytest.mark.parametrize("command", [
        "ls && rm -rf x",
        "echo hi; rm -rf x",
        "cd /tmp && rm -rf x",
        "cd .. && rm -rf x",
        "git status | rm -rf x",
        "echo $(rm -rf x)",
        "timeout 5 rm -rf x",
        "env FOO=1 rm -rf x",
    ])
    def test_deny_covers_every_part_of_a_compound_command(
        self,
        checker: PermissionChecker,
        project_dir: Path,
        write_settings: WriteSettings,
        command: str,
    ) -> None:
        write_settings({"permissions": {"allow": ["Bash(*)"], "deny": ["Bash(rm:*)"]}})

        result = checker.check_permission("Bash", {"command": command}, str(project_dir))

        assert result == PermissionDeny(
            "Blocked by deny list: matched deny list pattern Bash(rm:*)"
        ), command

    def test_ask_list_covers_compound_command(
        self, checker: PermissionChecker, project_dir: Path, write_settings: WriteSettings
    ) -> None:
        write_settings({"permissions": {"ask": ["Bash(git push:*)"], "allow": ["Bash(*)"]}})

        result = checker.check_permission(
            "Bash", {"command": "git status && git push origin main"}, str(project_dir)
        )

        assert isinstance(result, PermissionAskUser)

    def test_cd_within_project_then_allowed_command(
        self, checker: PermissionChecker, project_dir: Path, write_settings: WriteSettings
    ) -> None:
        write_settings({"permissions": {"allow": ["Bash(dart pub:*)"]}})
        command = f"cd {project_dir}/sub && dart pub get"

        result = checker.check_permission("Bash", {"command": command}, str(project_dir))

        assert isinstance(result, PermissionAllow)
        assert "Bash(dart pub:*)" in result.reason

    def test_cd_outside_project_is_not_allowed(
        self, checker: PermissionChecker, project_dir: Path, write_settings: WriteSettings
    ) -> None:
        write_settings({"permissions": {"allow": ["Bash(dart pub:*)"]}})

        result = checker.check_permission(
            "Bash", {"command": "cd /other && dart pub get"}, str(project_dir)
        )

        assert isinstance(result, PermissionAskUser)
        assert result.inferred_pattern == "Bash(dart pub get:*)"

    def test_session_pattern_allows_write(self, checker: PermissionChecker) -> None:
        checker.add_session_pattern("Write(/proj/**)")

        result = checker.check_permission("Write", {"file_path": "/proj/lib/main.dart"}, "/proj")

        assert isinstance(result, PermissionAllow)
        assert "session cache" in result.reason

    def test_session_pattern_does_not_cover_bash(self, checker: PermissionChecker) -> None:
        checker.add_session_pattern("Bash(*)")

        result = checker.check_permission("Bash", {"command": "make deploy"}, "/proj")

        assert isinstance(result, PermissionAskUser)
        assert not checker.is_allowed_by_session_cache(
            "Bash", BashToolInput(command="make deploy"), "/proj"
        )


@pytest.mark.unit
class TestDecisionOrder:
    """Precedence between the rule layers."""

    def test_internal_tools_allowed(self, checker: PermissionChecker) -> None:
        for tool_name in ("TodoWrite", "BashOutput", "mcp__agentgate-tools__notify"):
            result = checker.check_permission(tool_name, {}, "/proj")
            assert result == PermissionAllow(REASON_INTERNAL_TOOL), tool_name

    def test_blocked_tool_denied(self, checker: PermissionChecker) -> None:
        result = checker.check_permission("mcp__dart__analyze_files", {}, "/proj")

        assert isinstance(result, PermissionDeny)
        assert result.reason.startswith("Blocked: mcp__dart__analyze_files")

    def test_blocked_tool_beats_allow_list(
        self, checker: PermissionChecker, project_dir: Path, write_settings: WriteSettings
    ) -> None:
        write_settings({"permissions": {"allow": ["mcp__dart__.*"]}})

        result = checker.check_permission("mcp__dart__analyze_files", {}, str(project_dir))

        assert isinstance(result, PermissionDeny)

    def test_deny_beats_safe_command(
        self, checker: PermissionChecker, project_dir: Path, write_settings: WriteSettings
    ) -> None:
        write_settings({"permissions": {"deny": ["Bash(ls:*)"]}})

        result = checker.check_permission("Bash", {"command": "ls"}, str(project_dir))

        assert isinstance(result, PermissionDeny)

    def test_deny_beats_session_cache(
        self, checker: PermissionChecker, project_dir: Path, write_settings: WriteSettings
    ) -> None:
        write_settings({"permissions": {"deny": ["Write(**/.env)"]}})
        checker.add_session_pattern("Write(**)")

        result = checker.check_permission(
            "Write", {"file_path": f"{project_dir}/.env"}, str(project_dir)
        )

        assert isinstance(result, PermissionDeny)

    def test_ask_list_beats_safe_command(
        self, checker: PermissionChecker, project_dir: Path, write_settings: WriteSettings
    ) -> None:
        write_settings({"permissions": {"ask": ["Bash(git log:*)"], "allow": ["Bash(*)"]}})

        result = checker.check_permission("Bash", {"command": "git log"}, str(project_dir))

        assert isinstance(result, PermissionAskUser)
        assert "ask list" in result.reason
        assert result.inferred_pattern == "Bash(git log:*)"

    def test_allow_list(
        self, checker: PermissionChecker, project_dir: Path, write_settings: WriteSettings
    ) -> None:
        write_settings({"permissions": {"allow": ["Bash(npm test:*)", "WebFetch(domain:pub.dev)"]}})
        cwd = str(project_dir)

        bash = checker.check_permission("Bash", {"command": "npm test -- -u"}, cwd)
        fetch = checker.check_permission("WebFetch", {"url": "https://pub.dev/x"}, cwd)

        assert bash == PermissionAllow("Auto-approved: matched allow list pattern Bash(npm test:*)")
        assert isinstance(fetch, PermissionAllow)

    def test_settings_reloaded_between_checks(
        self, checker: PermissionChecker, project_dir: Path
    ) -> None:
        cwd = str(project_dir)
        assert isinstance(
            checker.check_permission("Bash", {"command": "npm test"}, cwd), PermissionAskUser
        )

        checker.settings_manager_for(cwd).add_to_allow_list("Bash(npm test:*)")

        assert isinstance(
            checker.check_permission("Bash", {"command": "npm test"}, cwd), PermissionAllow
        )

    def test_broken_settings_fall_back_to_asking(self, checker: PermissionChecker, project_dir: Path) -> None:
        path = project_dir / ".claude" / "settings.local.json"
        path.parent.mkdir()
        path.write_text("{broken")

        result = checker.check_permission("Bash", {"command": "npm test"}, str(project_dir))

        assert isinstance(result, PermissionAskUser)
        assert checker.settings_error(str(project_dir)) is not None

    def test_read_only_tools_need_a_rule_by_default(self, checker: PermissionChecker) -> None:
        result = checker.check_permission("Read", {"file_path": "/proj/a.py"}, "/proj")

        assert isinstance(result, PermissionAskUser)
        assert result.inferred_pattern == "Read(/proj/**)"

    def test_read_only_auto_approve(self, project_dir: Path, write_settings: WriteSettings) -> None:
        write_settings({"permissions": {"deny": ["Read(**/.env)"]}})
        config = PermissionCheckerConfig(auto_approve_read_only=True)
        cwd = str(project_dir)

        with PermissionChecker(config) as checker:
            assert isinstance(
                checker.check_permission("Grep", {"pattern": "x"}, cwd), PermissionAllow
            )
            assert isinstance(
                checker.check_permission("Read", {"file_path": f"{cwd}/.env"}, cwd), PermissionDeny
            )

    def test_load_settings_disabled(self, project_dir: Path, write_settings: WriteSettings) -> None:
        write_settings({"permissions": {"deny": ["Bash(ls:*)"]}})
        config = PermissionCheckerConfig(load_settings=False)

        with PermissionChecker(config) as checker:
            result = checker.check_permission("Bash", {"command": "ls"}, str(project_dir))

        assert isinstance(result, PermissionAllow)

    def test_custom_safe_filters(self, project_dir: Path) -> None:
        config = PermissionCheckerConfig(safe_filters=["grep", "yq"])
        command = {"command": "cat config.yaml | yq .version"}

        with PermissionChecker(config) as checker:
            assert isinstance(
                checker.check_permission("Bash", command, str(project_dir)), PermissionAllow
            )
        with PermissionChecker() as checker:
            assert isinstance(
                checker.check_permission("Bash", command, str(project_dir)), PermissionAskUser
            )


@pytest.mark.unit
class TestAskUserBehavior:
    """Outcome when no rule decides."""

    def test_ask(self, checker: PermissionChecker) -> None:
        result = checker.check_permission("WebFetch", {"url": "https://example.com/a"}, "/proj")

        assert result == PermissionAskUser(
            inferred_pattern="WebFetch(domain:example.com)",
            reason=result.reason,
        )

    def test_deny(self) -> None:
        with PermissionChecker(PermissionCheckerConfig.rest_api()) as checker:
            result = checker.check_permission("Bash", {"command": "make"}, "/proj")

        assert result == PermissionDeny(REASON_ASK_DENIED)

    def test_allow(self) -> None:
        with PermissionChecker(PermissionCheckerConfig.testing()) as checker:
            result = checker.check_permission("Bash", {"command": "make"}, "/proj")

        assert result == PermissionAllow(REASON_ASK_AUTO_ALLOWED)

    def test_allow_mode_still_honours_blocked_tools(self) -> None:
        config = PermissionCheckerConfig(ask_user_behavior=AskUserBehavior.ALLOW)
        with PermissionChecker(config) as checker:
            result = checker.check_permission("mcp__dart__analyze_files", {}, "/proj")

        assert isinstance(result, PermissionDeny)


@pytest.mark.unit
class TestInputs:
    """Accepted input shapes."""

    def test_typed_input(self, checker: PermissionChecker) -> None:
        result = checker.check_permission("Bash", BashToolInput(command="pwd"), "/proj")
        assert isinstance(result, PermissionAllow)

    def test_missing_input(self, checker: PermissionChecker) -> None:
        result = checker.check_permission("Bash", None, "/proj")
        assert isinstance(result, PermissionAskUser)
        assert result.inferred_pattern == "Bash(*)"

    def test_empty_cwd(self, checker: PermissionChecker) -> None:
        result = checker.check_permission("Bash", {"command": "cd sub && ls"}, "")
        assert isinstance(result, PermissionAskUser)


@pytest.mark.unit
class TestSessionCache:
    """Session cache lifecycle."""

    def test_malformed_pattern_ignored(self, checker: PermissionChecker) -> None:
        checker.add_session_pattern("Write(/p/**")
        assert checker.session_patterns == frozenset()

    def test_clear_is_idempotent(self, checker: PermissionChecker) -> None:
        checker.add_session_pattern("Write(/proj/**)")
        checker.clear_session_cache()
        checker.clear_session_cache()

        assert checker.session_patterns == frozenset()
        assert not checker.is_allowed_by_session_cache(
            "Write", WriteToolInput(file_path="/proj/a"), "/proj"
        )

    def test_cache_disabled(self) -> None:
        with PermissionChecker(PermissionCheckerConfig(enable_session_cache=False)) as checker:
            checker.add_session_pattern("Write(/proj/**)")
            result = checker.check_permission("Write", {"file_path": "/proj/a"}, "/proj")

        assert isinstance(result, PermissionAskUser)

    def test_covers_edit_and_multi_edit(self, checker: PermissionChecker) -> None:
        checker.add_session_pattern("Edit|MultiEdit")

        assert checker.is_allowed_by_session_cache("Edit", {"file_path": "/a"})
        assert checker.is_allowed_by_session_cache("MultiEdit", {"file_path": "/a"})
        assert not checker.is_allowed_by_session_cache("Read", {"file_path": "/a"})

    def test_dispose_is_idempotent(self) -> None:
        checker = PermissionChecker()
        checker.add_session_pattern("Write(/proj/**)")

        checker.dispose()
        checker.dispose()

        assert checker.session_patterns == frozenset()

    def test_concurrent_adds(self) -> None:
        cache = SessionPatternCache()

        def add_many(offset: int) -> None:
            for i in range(200):
                cache.add(f"Write(/p{offset}/{i}/**)")

        threads = [threading.Thread(target=add_many, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(cache) == 800
        assert "Write(/p0/0/**)" in cache


@pytest.mark.integration
class TestGitignore:
    """Reads of files the project ignores."""

    @pytest.fixture
    def ignoring_project(self, project_dir: Path) -> Path:
        (project_dir / ".gitignore").write_text(".env\nbuild/\n*.log\n!keep.log\n")
        return project_dir

    @pytest.mark.parametrize("file_path", [
        ".env",
        "build/app.js",
        "logs/debug.log",
        "{root}/build/deep/bundle.js",
        "{root}/src/../.env",
    ])
    def test_ignored_read_denied_before_allow_list(
        self,
        file_path: str,
        checker: PermissionChecker,
        ignoring_project: Path,
        write_settings: WriteSettings,
    ) -> None:
        write_settings({"permissions": {"allow": ["Read"]}})

        result = checker.check_permission(
            "Read", {"file_path": file_path.format(root=ignoring_project)}, str(ignoring_project)
        )

        assert result == PermissionDeny(REASON_GITIGNORE)

    @pytest.mark.parametrize("file_path", ["src/main.py", "logs/keep.log", "/etc/hosts"])
    def test_other_reads_follow_the_rules(
        self,
        file_path: str,
        checker: PermissionChecker,
        ignoring_project: Path,
        write_settings: WriteSettings,
    ) -> None:
        write_settings({"permissions": {"allow": ["Read"]}})

        result = checker.check_permission("Read", {"file_path": file_path}, str(ignoring_project))

        assert isinstance(result, PermissionAllow)

    def test_only_read_is_affected(
        self, checker: PermissionChecker, ignoring_project: Path, write_settings: WriteSettings
    ) -> None:
        write_settings({"permissions": {"allow": ["Write", "Bash(cat:*)"]}})
        cwd = str(ignoring_project)

        assert isinstance(
            checker.check_permission("Write", {"file_path": "build/out.js"}, cwd), PermissionAllow
        )
        assert isinstance(
            checker.check_permission("Bash", {"command": "cat .env"}, cwd), PermissionAllow
        )

    def test_disabled_by_config(self, ignoring_project: Path, write_settings: WriteSettings) -> None:
        write_settings({"permissions": {"allow": ["Read"]}})
        config = PermissionCheckerConfig(respect_gitignore=False)

        with PermissionChecker(config) as checker:
            result = checker.check_permission(
                "Read", ReadToolInput(file_path=".env"), str(ignoring_project)
            )

        assert isinstance(result, PermissionAllow)

    def test_internal_tools_are_not_affected(
        self, checker: PermissionChecker, ignoring_project: Path
    ) -> None:
        result = checker.check_permission(
            "mcp__agentgate-tools__notify", {"file_path": ".env"}, str(ignoring_project)
        )
        assert result == PermissionAllow(REASON_INTERNAL_TOOL)

    def test_matcher_is_shared_per_project(
        self, checker: PermissionChecker, ignoring_project: Path
    ) -> None:
        cwd = str(ignoring_project)
        assert checker.gitignore_matcher_for(cwd) is checker.gitignore_matcher_for(cwd + "/")
