"""Core utilities for the knowledge sync engine."""

from .errors import (
    AppError,
    ChunkingError,
    ConnectionFailureError,
    ConnectorNotFoundError,
    DatabaseError,
    DataSourceDisabledError,
    DataSourceNotFoundError,
    DeletionError,
    DocumentProcessingError,
    ErrorCode,
    InvalidCredentialsError,
    SyncInProgressError,
    ValidationError,
)

__all__ = [
    "AppError",
    "ChunkingError",
    "ConnectionFailureError",
    "ConnectorNotFoundError",
    "DatabaseError",
    "DataSourceDisabledError",
    "DataSourceNotFoundError",
    "DeletionError",
    "DocumentProcessingError",
    "ErrorCode",
    "InvalidCredentialsError",
    "SyncInProgressError",
    "ValidationError",
]
