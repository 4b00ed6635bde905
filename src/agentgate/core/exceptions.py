"""
Gate exceptions.

Custom exception classes for agentgate.
"""


class GateError(Exception):
    """Base exception for agentgate errors."""
    pass


class SettingsError(GateError):
    """Reading or writing the project settings file failed."""
    pass


class InvalidToolInputError(GateError):
    """Tool arguments supplied from outside could not be decoded."""
    pass
