"""
Services package for agentgate.

Contains the interactive approval service used by front-ends.
"""
from .permission_service import (
    InteractivePermissionService,
    PermissionRequest,
)

__all__ = [
    "InteractivePermissionService",
    "PermissionRequest",
]
