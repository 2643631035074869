"""
Gateway error types.

Each carries the HTTP status and the message rendered as ``{"error": ...}``
by the exception handlers registered in ``gateway.main``.
"""


class GatewayError(Exception):
    """Base error with an HTTP status code."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ServiceUnavailable(GatewayError):
    """No MotherDuck connection is configured."""

    status_code = 503

    def __init__(self, message: str = "MotherDuck not configured. Set MOTHERDUCK_TOKEN."):
        super().__init__(message)


class BadRequest(GatewayError):
    """Client supplied an invalid request body."""

    status_code = 400


MISSING_SQL = "Missing SQL in body { sql }"
ONLY_SELECT = "Only SELECT queries are allowed."
