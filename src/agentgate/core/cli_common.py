"""
Shared CLI argument parsing utilities for agentgate.

Provides the argument definitions reused by the gate_cli subcommands.

Usage:
    from .cli_common import add_common_arguments, add_cwd_argument

    parser = create_common_parser("agentgate")
    add_common_arguments(parser)
"""
import argparse


# =============================================================================
# Argument Group Builders
# =============================================================================

def add_logging_arguments(parser: argparse.ArgumentParser) -> None:
    """
    Add logging configuration arguments to parser.

    Args:
        parser: ArgumentParser to add arguments to.
    """
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )
    parser.add_argument(
        "--log-stderr",
        action="store_true",
        help="Also write log records to stderr (colored)"
    )


def add_config_arguments(parser: argparse.ArgumentParser) -> None:
    """
    Add gate configuration arguments to parser.

    Args:
        parser: ArgumentParser to add arguments to.
    """
    parser.add_argument(
        "--config", "-c",
        type=str,
        metavar="PATH",
        help="Path to agentgate.yaml configuration file (default: config/agentgate.yaml)"
    )
    parser.add_argument(
        "--mode",
        type=str,
        choices=["tui", "rest", "testing"],
        default=None,
        help="""
Use a built-in preset instead of the configuration file:
  tui     - undecided calls are reported as "ask"
  rest    - undecided calls are denied
  testing - settings ignored, undecided calls are allowed"""
    )


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the logging and configuration arguments shared by all subcommands."""
    add_logging_arguments(parser)
    add_config_arguments(parser)


def add_cwd_argument(parser: argparse.ArgumentParser) -> None:
    """
    Add the project directory argument to parser.

    Args:
        parser: ArgumentParser to add arguments to.
    """
    parser.add_argument(
        "--cwd", "-d",
        type=str,
        default=None,
        help="Project directory holding .claude/settings.local.json (default: current directory)"
    )


# =============================================================================
# Parser Builders
# =============================================================================

def create_common_parser(
    description: str,
    epilog: str = "",
) -> argparse.ArgumentParser:
    """
    Create a parser with common formatting settings.

    Args:
        description: Parser description.
        epilog: Parser epilog (examples).

    Returns:
        Configured ArgumentParser.
    """
    return argparse.ArgumentParser(
        description=description,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=epilog,
    )
