"""Custom exception classes for Folio."""

from typing import Optional


class FolioError(Exception):
    """Base class for all workspace storage failures.

    Attributes:
        message: Error message
        path: Workspace-relative path the failure concerns (if known)
    """

    def __init__(self, message: str, path: Optional[str] = None):
        """Initialize FolioError.

        Args:
            message: Error message
            path: Workspace-relative path the failure concerns
        """
        super().__init__(message)
        self.path = path


class NotFoundError(FolioError):
    """Entry vanished or never existed. Retryable by re-resolving the path."""


class NameCollisionError(FolioError):
    """Target name already exists. Never auto-overwritten for rename or create."""


class NotEmptyError(FolioError):
    """Non-recursive delete of a directory that still has children."""


class PermissionDeniedError(FolioError):
    """Capability grant lapsed or was refused."""


class InvalidTargetError(FolioError):
    """Move or copy of a directory into itself or one of its descendants."""


class OperationCancelledError(FolioError):
    """User abandoned a picker or permission prompt. Not a failure."""

    def __init__(self, message: str = "Operation cancelled by user", path: Optional[str] = None):
        super().__init__(message, path)


class StaleReferenceError(FolioError):
    """Bound handle is invalid and re-resolving its path also failed."""


class UnreadableFileError(FolioError):
    """File content cannot be decoded as UTF-8 text."""


class NoRootError(FolioError):
    """Operation requires an open workspace root."""

    def __init__(self, message: str = "No workspace root is open", path: Optional[str] = None):
        super().__init__(message, path)


class InvalidPathError(ValueError):
    """Path string cannot be used as a workspace-relative path."""
