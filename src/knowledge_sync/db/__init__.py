"""Database clients for the knowledge sync engine."""

from .postgres import PostgresClient

__all__ = ["PostgresClient"]
