"""
Global configuration for agentgate.

This module defines directory paths and the loader for the gate's own
YAML configuration (config/agentgate.yaml).

Usage:
    from agentgate.config import GATE_DIR, LOGS_DIR, CONFIG_DIR
    from agentgate.config import load_gate_config, ConfigNotFoundError

    # Load the checker section (fails if the file is missing)
    section = load_gate_config()["checker"]

    # Or with custom config path
    data = load_gate_config(Path("./custom-gate.yaml"))
"""
import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)


class ConfigNotFoundError(Exception):
    """Raised when a required configuration file is not found."""
    pass


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


# GATE_DIR is the root of the agentgate checkout.
# Allow override via AGENTGATE_ROOT so deployments can mount config and logs elsewhere.
_gate_root_override = os.environ.get("AGENTGATE_ROOT")
if _gate_root_override:
    GATE_DIR: Path = Path(_gate_root_override).resolve()
else:
    # config.py is at ROOT/src/agentgate/config.py
    GATE_DIR = Path(__file__).parent.parent.parent.resolve()

# Standard directories
LOGS_DIR: Path = GATE_DIR / "logs"
CONFIG_DIR: Path = GATE_DIR / "config"

# Configuration files
GATE_CONFIG_FILE: Path = CONFIG_DIR / "agentgate.yaml"


def load_gate_config(config_path: Optional[Path] = None) -> dict[str, Any]:
    """
    Load the gate configuration file.

    Args:
        config_path: Path to the YAML file. Defaults to CONFIG_DIR/agentgate.yaml.

    Returns:
        Parsed configuration mapping.

    Raises:
        ConfigNotFoundError: If the file does not exist.
        ConfigValidationError: If the file is empty, malformed, or not a mapping.
    """
    path = config_path or GATE_CONFIG_FILE
    if not path.exists():
        raise ConfigNotFoundError(
            f"Gate configuration not found: {path}\n"
            f"Create the file or pass a custom path with --config."
        )

    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigValidationError(
            f"Failed to parse gate configuration {path}: {e}"
        ) from e

    if data is None:
        raise ConfigValidationError(f"Gate configuration file is empty: {path}")
    if not isinstance(data, dict):
        raise ConfigValidationError(
            f"Gate configuration must be a mapping, got {type(data).__name__}: {path}"
        )

    logger.info(f"Configuration loaded from {path}")
    return data
