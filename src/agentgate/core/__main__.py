"""
Allow running the core package as a module.

Usage:
    python -m agentgate.core check Bash --input '{"command": "ls"}'

Or via the installed script:
    agentgate hook < payload.json
"""
import sys

from .gate_cli import main

if __name__ == "__main__":
    sys.exit(main())
