"""
Authorization errors raised by write paths.

Read paths never raise these; they return empty/None/False instead.
The API layer maps each class to an HTTP status code.
"""


class RBACError(Exception):
    """Base class for authorization failures"""

    status_code = 400

    def __init__(self, message: str = None):
        self.message = message or self.__class__.__doc__
        super().__init__(self.message)


class Unauthenticated(RBACError):
    """Not authenticated"""

    status_code = 401


class PermissionDenied(RBACError):
    """Insufficient permissions"""

    status_code = 403

    def __init__(self, message: str = None, permission: str = None):
        self.permission = permission
        if message is None and permission is not None:
            message = f"Permission '{permission}' required"
        super().__init__(message)


class AlreadyExists(RBACError):
    """Resource already exists"""

    status_code = 409


class NotFound(RBACError):
    """Resource not found"""

    status_code = 404
