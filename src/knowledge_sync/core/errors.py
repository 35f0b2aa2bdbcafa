"""Error handling with RFC 7807 Problem Details support."""

from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Standardized error codes for the sync engine."""

    VALIDATION_ERROR = "validation_error"
    DATABASE_ERROR = "database_error"
    INTERNAL_ERROR = "internal_error"
    CHUNKING_FAILED = "chunking_failed"
    # Data source lifecycle
    DATA_SOURCE_NOT_FOUND = "data_source_not_found"
    DATA_SOURCE_DISABLED = "data_source_disabled"
    SYNC_IN_PROGRESS = "sync_in_progress"
    # Connector errors
    CONNECTOR_NOT_FOUND = "connector_not_found"
    INVALID_CREDENTIALS = "invalid_credentials"
    CONNECTION_FAILED = "connection_failed"
    # Per-document errors
    DOCUMENT_PROCESSING_FAILED = "document_processing_failed"
    DELETION_FAILED = "deletion_failed"


class AppError(Exception):
    """
    Structured application error following RFC 7807 Problem Details.

    Attributes:
        code: Error code from ErrorCode enum
        message: Human-readable error message
        status: HTTP status code
        details: Additional error context
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status: int = 500,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status = status
        self.details = details or {}
        super().__init__(message)

    def to_problem_detail(self, instance: str) -> dict[str, Any]:
        """
        Convert error to RFC 7807 Problem Details format.

        Args:
            instance: The request path where the error occurred

        Returns:
            Dictionary in RFC 7807 format
        """
        problem = {
            "type": f"https://api.example.com/errors/{self.code.value.replace('_', '-')}",
            "title": self.code.value.replace("_", " ").title(),
            "status": self.status,
            "detail": self.message,
            "instance": instance,
        }
        if self.details:
            problem["errors"] = self.details
        return problem


class ValidationError(AppError):
    """Validation error for data source configuration."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            status=400,
            details=details,
        )


class DatabaseError(AppError):
    """Database operation error."""

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(
            code=ErrorCode.DATABASE_ERROR,
            message=f"Database error during {operation}: {reason}",
            status=500,
            details={"operation": operation},
        )


class ChunkingError(AppError):
    """Error during document chunking."""

    def __init__(self, document_id: Optional[str], reason: str) -> None:
        super().__init__(
            code=ErrorCode.CHUNKING_FAILED,
            message=f"Document chunking failed: {reason}",
            status=500,
            details={"document_id": document_id} if document_id else None,
        )


class DataSourceNotFoundError(AppError):
    """Error when a data source does not exist for the tenant."""

    def __init__(self, data_source_id: str) -> None:
        super().__init__(
            code=ErrorCode.DATA_SOURCE_NOT_FOUND,
            message=f"Data source '{data_source_id}' not found",
            status=404,
            details={"data_source_id": data_source_id},
        )


class DataSourceDisabledError(AppError):
    """Error when a sync is requested for a disabled data source."""

    def __init__(self, data_source_id: str) -> None:
        super().__init__(
            code=ErrorCode.DATA_SOURCE_DISABLED,
            message="Data source is disabled",
            status=409,
            details={"data_source_id": data_source_id},
        )


class SyncInProgressError(AppError):
    """Error when a data source is already being synced by this process."""

    def __init__(self, data_source_id: str) -> None:
        super().__init__(
            code=ErrorCode.SYNC_IN_PROGRESS,
            message=f"Sync already in progress for data source '{data_source_id}'",
            status=409,
            details={"data_source_id": data_source_id},
        )


class ConnectorNotFoundError(AppError):
    """Error when no connector is registered for a source type."""

    def __init__(self, source_type: str, supported: Optional[list[str]] = None) -> None:
        details: dict[str, Any] = {"source_type": source_type}
        if supported is not None:
            details["supported"] = supported
        super().__init__(
            code=ErrorCode.CONNECTOR_NOT_FOUND,
            message=f"Connector for source type '{source_type}' not found",
            status=404,
            details=details,
        )


class InvalidCredentialsError(AppError):
    """Error when credentials are structurally invalid for a connector."""

    def __init__(self, source_type: str, missing: Optional[list[str]] = None) -> None:
        details: dict[str, Any] = {"source_type": source_type}
        if missing:
            details["missing"] = missing
        super().__init__(
            code=ErrorCode.INVALID_CREDENTIALS,
            message="Invalid credentials format",
            status=400,
            details=details,
        )


class ConnectionFailureError(AppError):
    """Error when a connector cannot authenticate against or reach its source."""

    def __init__(self, source_type: str, reason: str) -> None:
        super().__init__(
            code=ErrorCode.CONNECTION_FAILED,
            message=f"{source_type} connection failed: {reason}",
            status=502,
            details={"source_type": source_type},
        )


class DocumentProcessingError(AppError):
    """Error while creating or updating a single synced document."""

    def __init__(self, title: str, reason: str) -> None:
        super().__init__(
            code=ErrorCode.DOCUMENT_PROCESSING_FAILED,
            message=f"{title}: {reason}",
            status=500,
            details={"title": title},
        )


class DeletionError(AppError):
    """Error while deleting a document that disappeared from its source."""

    def __init__(self, title: str, reason: str) -> None:
        super().__init__(
            code=ErrorCode.DELETION_FAILED,
            message=f"Delete {title}: {reason}",
            status=500,
            details={"title": title},
        )
