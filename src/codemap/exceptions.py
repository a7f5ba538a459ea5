"""Custom exceptions for the code map."""


class CodeMapError(Exception):
    """Base exception for all code map errors."""

    pass


class NotFoundError(CodeMapError):
    """Raised when a file, symbol or definition is not where it was expected."""

    pass


class UserError(CodeMapError):
    """Raised when an operation makes no sense in the current state."""

    pass


class ConflictError(CodeMapError):
    """Raised when a rename target already exists in the map."""

    pass


class CorruptedFileError(CodeMapError):
    """Raised when a saved map or index file is missing required fields."""

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path
