"""
Error taxonomy shared by the services and the HTTP layer.

Each error carries the HTTP status it is reported with; the app registers a
single handler that renders ``{"error": true, "message": ...}``.
"""

from __future__ import annotations


class TravelBookError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TravelBookError):
    status_code = 400


class Unauthenticated(TravelBookError):
    status_code = 401


class NotFound(TravelBookError):
    """Entity is absent or not owned by the caller; both look the same."""

    status_code = 404


class DuplicateAccount(TravelBookError):
    status_code = 400


class InvalidCredentials(TravelBookError):
    status_code = 400


class InvalidIdentity(TravelBookError):
    status_code = 400


class UploadError(TravelBookError):
    status_code = 500


class StorageError(TravelBookError):
    status_code = 500
