"""Exceptions raised by the storage and creative-handling layers.

Storage errors carry a human-readable message meant to be shown to the
operator as-is; the HTTP layer maps them to error responses.
"""

from __future__ import annotations

from typing import Any


class CreativePerfError(Exception):
    """Base exception for all service errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}


class StorageError(CreativePerfError):
    """Raised when a table cannot be read from or written to the store."""


class StorageNotConnectedError(StorageError):
    """Raised when a table other than ``config`` is accessed before connecting."""


class StorageQuotaExceededError(StorageError):
    """Raised when a serialized table exceeds the configured storage quota."""


class CreativeReadError(CreativePerfError):
    """Raised when an uploaded creative cannot be read, hashed or decoded."""
