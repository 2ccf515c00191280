"""
Failure taxonomy shared by services and route handlers.

Services raise these before touching the store; create_app() maps them to
HTTP responses (JSON for /api/*, error templates for pages).
"""
from __future__ import annotations


class PortalError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnauthenticatedError(PortalError):
    """No valid session."""

    status_code = 401


class UnauthorizedError(PortalError):
    """Authenticated, but wrong role or not the owner of the record."""

    status_code = 403


class ValidationError(PortalError):
    """Missing field or a violated business rule."""

    status_code = 400


class ConflictError(PortalError):
    """Duplicate of a uniquely-keyed record; retry with different input."""

    status_code = 409


class NotFoundError(PortalError):
    status_code = 404
