"""
agentgate: permission decisions for AI coding-agent tool calls.

See agentgate.core for the checker, matcher and safe-command classifier,
and agentgate.services for interactive approval.
"""
__version__ = "0.1.0"
