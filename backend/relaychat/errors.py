"""Error taxonomy shared by the HTTP layer and the socket gateway.

Every error carries the HTTP status it maps to. The message is safe to show
to clients, except for ``StoreError`` whose message is replaced by a generic
one before it leaves the server.
"""


class RelayError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(RelayError):
    """Missing or malformed required fields."""

    status_code = 400


class AuthError(RelayError):
    """Bad credentials, duplicate registration or foreign identity."""

    status_code = 400


class NotFoundError(RelayError):
    status_code = 404


class StoreError(RelayError):
    """Durable storage failed. Not retried here; callers may retry."""

    status_code = 500
    public_message = "Internal storage error"
