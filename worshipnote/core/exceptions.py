"""
Exception classes for worshipnote.

This module defines all custom exceptions used throughout the application.
Each exception carries the ErrorKind it represents so that a failed
Result can be turned into an exception (Result.unwrap) and back without
losing the classification.

Exception Hierarchy:
    WorshipNoteError (base)
        ConfigError - Configuration file issues
        CacheError - Local cache could not be written (fatal for a save)
        InvalidInputError - Missing/malformed song fields
        SourceFileMissingError - A song's sheet file is absent on disk
        AmbiguousMatchError - File recovery found several plausible songs
        RemoteUnavailableError - OneDrive data folder unreachable/unwritable
        InvalidBackupFormatError - Restore snapshot rejected
        FileOperationError - Low-level file failure (not found, timeout, I/O)
"""

from worshipnote.core.result import ErrorKind


class WorshipNoteError(Exception):
    """
    Base exception for all worshipnote errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch all worshipnote errors with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g., paths, song ids).
        kind: The ErrorKind this exception represents.

    Example:
        try:
            repository.restore(snapshot).unwrap()
        except WorshipNoteError as e:
            logger.error(f"Restore failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    kind: ErrorKind = ErrorKind.IO_ERROR

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description that will be shown to the user.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'path': File path involved in the error
                     - 'song_id': Song involved in the error
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(WorshipNoteError):
    """
    Raised when there's an issue with the configuration file.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - An explicitly passed config file does not exist
        - config.yaml has invalid YAML syntax
        - Invalid field values (e.g., negative read timeout)
    """
    kind = ErrorKind.INVALID_INPUT


class CacheError(WorshipNoteError):
    """
    Raised when the local cache cannot be written.

    The local cache is the durability floor for a session, so a failed
    cache write fails the whole save. Remote failures never raise this.
    """
    kind = ErrorKind.IO_ERROR


class InvalidInputError(WorshipNoteError):
    """
    Raised when a song is missing required fields (empty id or title).

    Callers must not attempt any file I/O after this error.
    """
    kind = ErrorKind.INVALID_INPUT


class SourceFileMissingError(WorshipNoteError):
    """
    Raised when a song's sheet file is absent on disk.

    The song record itself is never deleted because of this error.

    Example:
        raise SourceFileMissingError(
            "Sheet file not found: Old Title (C) (1).jpg",
            details={'path': '/.../Music_Sheets/Old Title (C) (1).jpg', 'song_id': '1'}
        )
    """
    kind = ErrorKind.SOURCE_FILE_MISSING


class AmbiguousMatchError(WorshipNoteError):
    """
    Raised when a legacy file matches more than one song equally well.

    Ambiguous files are reported for manual resolution, never auto-linked.
    """
    kind = ErrorKind.AMBIGUOUS_MATCH


class RemoteUnavailableError(WorshipNoteError):
    """
    Raised when the OneDrive data folder cannot be located, read or written.

    The local cache remains the source of truth for the session.
    """
    kind = ErrorKind.REMOTE_UNAVAILABLE


class InvalidBackupFormatError(WorshipNoteError):
    """
    Raised when a restore snapshot has an unknown type tag or lacks
    the 'songs' / 'worshipLists' keys.

    Restore is aborted wholesale; nothing is written.
    """
    kind = ErrorKind.INVALID_BACKUP_FORMAT


class FileOperationError(WorshipNoteError):
    """
    Raised for provider-level failures (not found, timeout, other I/O).

    The concrete kind is stored per instance since one class covers three kinds.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        kind: ErrorKind = ErrorKind.IO_ERROR
    ) -> None:
        super().__init__(message, details)
        self.kind = kind


_EXCEPTION_BY_KIND: dict[ErrorKind, type[WorshipNoteError]] = {
    ErrorKind.INVALID_INPUT: InvalidInputError,
    ErrorKind.SOURCE_FILE_MISSING: SourceFileMissingError,
    ErrorKind.AMBIGUOUS_MATCH: AmbiguousMatchError,
    ErrorKind.REMOTE_UNAVAILABLE: RemoteUnavailableError,
    ErrorKind.INVALID_BACKUP_FORMAT: InvalidBackupFormatError,
}


def exception_for(kind: ErrorKind, message: str, details: dict | None = None) -> WorshipNoteError:
    """
    Build the exception that represents an error kind.

    Args:
        kind: The error classification.
        message: Human-readable message.
        details: Optional context dictionary.

    Returns:
        An instance of the matching WorshipNoteError subclass.
        Provider-level kinds map to FileOperationError.
    """
    exc_class = _EXCEPTION_BY_KIND.get(kind)
    if exc_class is None:
        return FileOperationError(message, details, kind=kind)
    return exc_class(message, details)
