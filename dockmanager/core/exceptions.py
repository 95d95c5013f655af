"""
Domain exceptions.

Services raise these; the HTTP layer maps them to status codes in
dockmanager.main. Database errors are never wrapped.
"""

from typing import Optional


class DockManagerError(Exception):
    """Base class for all domain errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DockManagerError):
    """Malformed input. Never retried."""


class InvalidResourceType(ValidationError):
    def __init__(self, resource_type: str):
        super().__init__(f"invalid resource type: {resource_type}")
        self.resource_type = resource_type


class InvalidPermission(ValidationError):
    def __init__(self, permission: str):
        super().__init__(f"invalid permission: {permission}")
        self.permission = permission


class UnknownPruneCategory(ValidationError):
    def __init__(self, category: str):
        super().__init__(f"unknown prune type: {category}")
        self.category = category


class UnknownHelperAction(ValidationError):
    def __init__(self, action: str):
        super().__init__(f"unknown helper action: {action}")
        self.action = action


class UnsupportedAuthMethod(ValidationError):
    def __init__(self, auth_method: str):
        super().__init__(f"unsupported node auth method: {auth_method}")
        self.auth_method = auth_method


class NotFoundError(DockManagerError):
    """Referenced grant, node or container does not exist"""


class PermissionDenied(DockManagerError):
    """Caller lacks the permission required for the operation"""


class EngineConnectionError(DockManagerError):
    """
    The remote Docker engine could not be reached or failed mid-operation.

    Carries the underlying transport message and, when known, the node.
    """

    def __init__(self, message: str, node_id: Optional[object] = None):
        super().__init__(message)
        self.node_id = node_id
