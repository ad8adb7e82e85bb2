"""Custom exception classes for Folio.

Every message is meant to be shown to a user as-is, so each one names the
thing that went wrong (the missing workspace, the offending field, the OS
error) and what to do about it.
"""

from pathlib import Path
from typing import Optional, Sequence, Union


class FolioError(RuntimeError):
    """Base class for all errors raised by the content store."""


class NoWorkspaceError(FolioError):
    """Raised when an operation needs a workspace but none is bound."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "No workspace selected. Please select a workspace first.")


class InvalidArgumentError(FolioError, ValueError):
    """Raised when caller input has the wrong shape or an unknown enum value.

    Attributes:
        field: Name of the offending field (if known)
        allowed: Allowed values for enum-typed fields (if applicable)
    """

    def __init__(self, message: str, field: Optional[str] = None, allowed: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.field = field
        self.allowed = list(allowed) if allowed is not None else None

    @classmethod
    def for_enum(cls, field: str, value: object, allowed: Sequence[str]) -> "InvalidArgumentError":
        """Build the error for a value outside an enum allow-list."""
        return cls(
            f'Invalid {field} "{value}". Must be one of: {", ".join(allowed)}',
            field=field,
            allowed=allowed,
        )


class NotFoundError(FolioError, LookupError):
    """Raised when updating an entry that does not exist."""

    def __init__(self, namespace: str, entry_id: str):
        super().__init__(f'Entry not found: "{entry_id}" in "{namespace}". It may have been deleted outside the app.')
        self.namespace = namespace
        self.entry_id = entry_id


class CorruptMetadataError(FolioError):
    """Raised when an entry's sidecar cannot be parsed or a file is not UTF-8.

    Attributes:
        path: Path of the unreadable file
    """

    def __init__(self, path: Union[str, Path], detail: str):
        super().__init__(f"Cannot read {path}: {detail}. Fix or remove the file to load this entry.")
        self.path = Path(path)
        self.detail = detail


class IOFailureError(FolioError):
    """Raised when the filesystem rejects a read or write.

    Attributes:
        path: Path involved in the failed operation
        reason: Underlying OS error message
        errno: Underlying OS error number (if any)
    """

    def __init__(self, action: str, path: Union[str, Path], error: OSError):
        reason = error.strerror or str(error)
        super().__init__(f"Failed to {action} {path}: {reason}")
        self.path = Path(path)
        self.reason = reason
        self.errno = error.errno


class WatcherFailureError(FolioError):
    """Wraps a backend error when the OS watch fails.

    The watcher keeps it as ``last_error`` and reports it as a watcher-error
    event; the store itself keeps working.
    """
