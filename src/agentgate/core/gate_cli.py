"""
Command-line entry point for agentgate.

Subcommands:
    check   Decide a single tool call and print the result as JSON.
    hook    Act as a Claude Code PreToolUse command hook: read the hook
            payload from stdin, print the hook response on stdout.
    allow   Append a rule to the project allow list.

Logs go to logs/agentgate_cli.log (and to stderr with --log-stderr) so
stdout only carries JSON.
"""
import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional

from ..config import ConfigNotFoundError, ConfigValidationError, GATE_CONFIG_FILE
from .cli_common import add_common_arguments, add_cwd_argument, create_common_parser
from .exceptions import InvalidToolInputError, SettingsError
from .hooks import evaluate_hook_input
from .logging_config import setup_cli_logging
from .permission_checker import (
    PermissionAllow,
    PermissionChecker,
    PermissionCheckResult,
    PermissionDeny,
)
from .permission_config import LocalSettingsManager, PermissionCheckerConfig
from .permission_matcher import parse_pattern

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = create_common_parser(
        description="agentgate - permission decisions for agent tool calls",
        epilog="""
Examples:
  %(prog)s check Bash --input '{"command": "git status"}' --cwd ./my-project
  %(prog)s check Write --input '{"file_path": "src/app.py"}' --mode rest
  %(prog)s hook < payload.json
  %(prog)s allow 'Bash(npm test:*)' --cwd ./my-project
        """
    )
    add_common_arguments(parser)

    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser("check", help="Decide a single tool call")
    check_parser.add_argument("tool_name", help="Tool name, e.g. Bash or Write")
    check_parser.add_argument(
        "--input", "-i",
        type=str,
        default="{}",
        metavar="JSON",
        help="Tool input as a JSON object (default: {})"
    )
    add_cwd_argument(check_parser)

    hook_parser = subparsers.add_parser(
        "hook",
        help="Read a PreToolUse payload from stdin and print the hook response"
    )
    add_cwd_argument(hook_parser)

    allow_parser = subparsers.add_parser("allow", help="Add a rule to the project allow list")
    allow_parser.add_argument("pattern", help="Permission rule, e.g. 'Bash(git log:*)'")
    add_cwd_argument(allow_parser)

    return parser.parse_args(argv)


def load_checker_config(args: argparse.Namespace) -> PermissionCheckerConfig:
    """
    Build the checker configuration from --mode or --config.

    Without either, config/agentgate.yaml is used when present and the
    interactive defaults otherwise.

    Raises:
        ConfigNotFoundError: If --config names a missing file.
        ConfigValidationError: If the configuration is malformed.
    """
    if args.mode == "tui":
        return PermissionCheckerConfig.tui()
    if args.mode == "rest":
        return PermissionCheckerConfig.rest_api()
    if args.mode == "testing":
        return PermissionCheckerConfig.testing()

    if args.config:
        return PermissionCheckerConfig.from_yaml(Path(args.config))
    if GATE_CONFIG_FILE.exists():
        return PermissionCheckerConfig.from_yaml()
    return PermissionCheckerConfig()


def result_to_dict(result: PermissionCheckResult) -> dict[str, Any]:
    """Convert a checker decision to the JSON printed by "check"."""
    if isinstance(result, PermissionAllow):
        return {"decision": "allow", "reason": result.reason}
    if isinstance(result, PermissionDeny):
        return {"decision": "deny", "reason": result.reason}
    return {
        "decision": "ask",
        "reason": result.reason,
        "suggested_pattern": result.inferred_pattern,
    }


def parse_input_json(raw: str) -> dict[str, Any]:
    """
    Parse the --input argument.

    Raises:
        InvalidToolInputError: If the text is not a JSON object.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidToolInputError(f"Tool input is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise InvalidToolInputError(
            f"Tool input must be a JSON object, got {type(data).__name__}"
        )
    return data


def _resolve_cwd(cwd: Optional[str]) -> str:
    return os.path.abspath(cwd) if cwd else os.getcwd()


def run_check(args: argparse.Namespace, checker: PermissionChecker) -> int:
    tool_input = parse_input_json(args.input)
    result = checker.check_permission(args.tool_name, tool_input, _resolve_cwd(args.cwd))
    print(json.dumps(result_to_dict(result)))
    return EXIT_OK


def run_hook(args: argparse.Namespace, checker: PermissionChecker) -> int:
    """
    Hook mode for Claude Code command hooks.

    A payload that cannot be parsed produces no output, which leaves the
    decision to the host's own permission flow.
    """
    raw = sys.stdin.read()
    try:
        payload = json.loads(raw) if raw.strip() else {}
    except json.JSONDecodeError as e:
        logger.error(f"Hook payload is not valid JSON: {e}")
        return EXIT_ERROR
    if not isinstance(payload, dict):
        logger.error(f"Hook payload must be a JSON object, got {type(payload).__name__}")
        return EXIT_ERROR

    hook_result = evaluate_hook_input(checker, payload, default_cwd=_resolve_cwd(args.cwd))
    print(json.dumps(hook_result.to_sdk_response("PreToolUse")))
    return EXIT_OK


def run_allow(args: argparse.Namespace) -> int:
    if parse_pattern(args.pattern) is None:
        print(f"Invalid permission rule: {args.pattern!r}", file=sys.stderr)
        return EXIT_ERROR

    manager = LocalSettingsManager(_resolve_cwd(args.cwd))
    if manager.add_to_allow_list(args.pattern):
        print(f"Added {args.pattern} to {manager.settings_path}")
    else:
        print(f"{args.pattern} is already in {manager.settings_path}")
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code.
    """
    args = parse_args(argv)
    setup_cli_logging(args.log_level, stderr=args.log_stderr)

    try:
        if args.command == "allow":
            return run_allow(args)

        config = load_checker_config(args)
        with PermissionChecker(config) as checker:
            if args.command == "hook":
                return run_hook(args, checker)
            return run_check(args, checker)

    except (ConfigNotFoundError, ConfigValidationError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except InvalidToolInputError as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return EXIT_ERROR
    except SettingsError as e:
        print(f"Settings error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
