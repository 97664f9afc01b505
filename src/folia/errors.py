"""Error taxonomy shared by the path layer and the operation handlers."""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure kinds surfaced to callers in operation results."""

    UNAUTHORIZED = "unauthorized"
    INVALID_NAME = "invalid-name"
    INVALID_PATH = "invalid-path"
    EXISTS = "exists"
    WRITE_FAILED = "write-failed"
    READ_FAILED = "read-failed"
    INVALID_QUERY = "invalid-query"


class FoliaError(Exception):
    """Base error carrying the kind reported to callers."""

    kind: ErrorKind = ErrorKind.WRITE_FAILED

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind.value)


class InvalidPathError(FoliaError, ValueError):
    """A relative path failed normalization or escapes the library root."""

    kind = ErrorKind.INVALID_PATH


class InvalidNameError(FoliaError, ValueError):
    """A user-entered name cannot become a single path segment."""

    kind = ErrorKind.INVALID_NAME


class DestinationExistsError(FoliaError):
    """The destination of a create, rename, copy or move is already taken."""

    kind = ErrorKind.EXISTS
