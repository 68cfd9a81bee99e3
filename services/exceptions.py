"""
Service Exceptions

Errors raised by the loop and document services. Routes translate them
into JSON responses (see routes/errors.py).
"""


class LoopManagerError(Exception):
    """Base exception for all service errors."""
    status_code = 500

    def __init__(self, message: str = None):
        self.message = message or self.__class__.__doc__
        super().__init__(self.message)


class NotFound(LoopManagerError):
    """Referenced record or file does not exist."""
    status_code = 404


class PermissionDenied(LoopManagerError):
    """Actor is not allowed to perform this action."""
    status_code = 403


class InvalidState(LoopManagerError):
    """Record is not in a state that allows this operation."""
    status_code = 400


class ValidationError(LoopManagerError):
    """
    Raised when submitted input fails validation.

    `errors` maps a field name (or row/index label) to a list of messages.
    """
    status_code = 400

    def __init__(self, message: str = None, errors: dict = None):
        self.errors = errors or {}
        super().__init__(message or 'Validation failed')
