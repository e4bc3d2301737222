"""Error taxonomy shared by the store, the engines and the HTTP layer.

Every error carries a short snake_case `detail` code. The API turns these into
`{"error": detail}` bodies with the class's HTTP status.
"""

from __future__ import annotations


class LegislateError(Exception):
    status_code = 500

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class ValidationError(LegislateError):
    """Missing or malformed input."""

    status_code = 400


class AuthenticationError(LegislateError):
    """Missing/invalid/expired token, wrong password or OTP."""

    status_code = 401


class AuthorizationError(LegislateError):
    """Authenticated, but the role or verification status does not allow this."""

    status_code = 403


class NotFoundError(LegislateError):
    status_code = 404


class ConflictError(LegislateError):
    """Unique identifier already taken, or a request is not in a transitionable state."""

    status_code = 409
