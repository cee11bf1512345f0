"""Exception hierarchy for binwatch."""

from __future__ import annotations


class BinwatchError(Exception):
    """Base exception for all binwatch errors."""


class ConfigError(BinwatchError):
    """Invalid or missing configuration."""


class ValidationError(BinwatchError):
    """A sensor reading was rejected before reaching storage."""

    def __init__(self, message: str, *, field: str) -> None:
        self.field = field
        super().__init__(message)


class StorageError(BinwatchError):
    """The bin store failed to read or write."""


class TransportError(BinwatchError):
    """Dashboard-side fetch or subscription failure (network, non-200, bad JSON)."""

    def __init__(self, message: str, *, status_code: int | None = None, url: str = "") -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)
