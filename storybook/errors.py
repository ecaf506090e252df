"""
Error taxonomy shared by the reconcilers, stores and HTTP layer.

Each error carries the HTTP status the API responds with; the app factory
registers a single handler for ``StorybookError`` that renders them.
"""

from __future__ import annotations

from typing import Optional


class StorybookError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str, *, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def as_dict(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(StorybookError):
    """Missing required field or language, or inconsistent language sets."""

    status_code = 400

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        language: Optional[str] = None,
        details: Optional[str] = None,
    ):
        super().__init__(message, details=details)
        self.field = field
        self.language = language

    def as_dict(self) -> dict:
        payload = super().as_dict()
        if self.field:
            payload["field"] = self.field
        if self.language:
            payload["language"] = self.language
        return payload


class NotFoundError(StorybookError):
    status_code = 404


class UnsupportedMediaError(StorybookError):
    # Rendered as 400, not 415.
    status_code = 400


class AuthError(StorybookError):
    status_code = 401


class ConfigurationError(StorybookError):
    status_code = 500


class StoreError(StorybookError):
    """Persistence or object-storage failure. Not retried."""

    status_code = 500
