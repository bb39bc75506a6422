"""Custom exception classes for the application."""
from datetime import datetime, timezone
from typing import Any


class AppException(Exception):
    """Base exception for the application."""

    def __init__(self, message: str, detail: Any = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class NotFoundError(AppException):
    """Resource not found."""
    pass


class EmptyFeedError(NotFoundError):
    """Feed parsed but contains no property entries."""
    pass


class FeedAcquisitionError(AppException):
    """Vendor feed could not be fetched (network, timeout, non-2xx)."""

    def __init__(self, message: str, detail: Any = None):
        super().__init__(message, detail)
        self.timestamp = datetime.now(timezone.utc).isoformat()


class ParsingError(AppException):
    """Error parsing the XML feed."""
    pass


class ValidationError(AppException):
    """Data validation error."""
    pass


class NoValidRecordsError(ValidationError):
    """Every feed entry failed mapping."""
    pass


class RecordMappingError(AppException):
    """A single feed entry could not be mapped. Non-fatal for the import."""
    pass


class StorageError(AppException):
    """Database failure during an import."""
    pass


class ConstraintViolationError(StorageError):
    """Bulk upsert rejected by a uniqueness constraint."""
    pass


class RecordUpsertError(StorageError):
    """A single record could not be updated or inserted."""
    pass
