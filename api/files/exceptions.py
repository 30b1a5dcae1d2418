"""
Failure kinds raised by the file storage service

FileStorageError
 +-- InvalidInput
 |    +-- PayloadTooLarge
 +-- NotFound
 +-- PersistFailed
 |    +-- NotCreated
 |    +-- VersionConflict
 +-- StorageUnavailable

The HTTP layer maps each kind to a status code (see main.py).
"""

import uuid


class FileStorageError(Exception):
    """Base class for file storage failures"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(FileStorageError):
    """Malformed or missing required field. The caller must fix the request."""


class PayloadTooLarge(InvalidInput):
    """Uploaded content exceeds MAX_UPLOAD_SIZE"""

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"File size {size} bytes exceeds the maximum upload size of {limit} bytes"
        )
        self.size = size
        self.limit = limit


class NotFound(FileStorageError):
    """No record exists for the identifier"""

    def __init__(self, file_id: uuid.UUID):
        super().__init__(f"File not found with id {file_id}")
        self.file_id = file_id


class PersistFailed(FileStorageError):
    """The record store rejected a write"""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class NotCreated(PersistFailed):
    """The record store rejected the write of a new file"""

    def __init__(self, filename: str, cause: BaseException | None = None):
        super().__init__(
            f"Could not store file {filename}. Please try again!", cause
        )
        self.filename = filename


class VersionConflict(PersistFailed):
    """The record changed since the version the caller read"""

    def __init__(self, file_id: uuid.UUID, expected: int, actual: int | None = None):
        message = f"File {file_id} was modified: expected version {expected}"
        if actual is not None:
            message += f", found version {actual}"
        super().__init__(message)
        self.file_id = file_id
        self.expected = expected
        self.actual = actual


class StorageUnavailable(FileStorageError):
    """The record store is unreachable or timed out. Safe to retry."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause
