"""
Tagged outcome type for operations with expected failure modes.

File operations, the filename codec and the repository report expected
failures (file not found, OneDrive unreachable, corrupt backup...) as values
instead of raising. A Result is either Ok(value) or Err(kind, message).

Callers check the variant explicitly:

    result = files.read_file(path)
    if result.is_err:
        if result.kind is ErrorKind.NOT_FOUND:
            ...
        return result
    data = result.value

or convert the failure into the matching exception:

    data = files.read_file(path).unwrap()   # raises FileOperationError on Err
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar, Union


T = TypeVar("T")


class ErrorKind(Enum):
    """Classification of failures reported through Err."""
    # Domain kinds
    INVALID_INPUT = "invalid_input"
    SOURCE_FILE_MISSING = "source_file_missing"
    AMBIGUOUS_MATCH = "ambiguous_match"
    REMOTE_UNAVAILABLE = "remote_unavailable"
    INVALID_BACKUP_FORMAT = "invalid_backup_format"
    # File provider kinds
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    IO_ERROR = "io_error"


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""
    value: T

    @property
    def is_ok(self) -> bool:
        return True

    @property
    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    """
    Failed outcome.

    Attributes:
        kind: ErrorKind classifying the failure.
        message: Short human-readable description.
        details: Extra context (paths, ids, original error text).
    """
    kind: ErrorKind
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_ok(self) -> bool:
        return False

    @property
    def is_err(self) -> bool:
        return True

    def to_exception(self) -> Exception:
        """Return the WorshipNoteError subclass matching this failure."""
        # Imported here: exceptions imports ErrorKind from this module
        from worshipnote.core.exceptions import exception_for

        return exception_for(self.kind, self.message, self.details)

    def unwrap(self) -> Any:
        """Raise the exception matching this failure."""
        raise self.to_exception()


Result = Union[Ok[T], Err]
