"""
Storefront error taxonomy.

Services raise these; ``main.py`` renders them as ``{"detail": message}`` with
the class's status code.
"""


class StoreError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StoreError):
    """Missing or malformed input. Not retryable without changing the request."""

    status_code = 400


class AuthenticationError(StoreError):
    status_code = 401


class AuthorizationError(StoreError):
    status_code = 403


class NotFoundError(StoreError):
    status_code = 404


class ConflictError(StoreError):
    status_code = 409


class InfrastructureError(StoreError):
    """Storage unreachable or a commit failed. Safe to retry, nothing partial persists."""

    status_code = 503
