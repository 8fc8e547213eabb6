"""API error classes.

WHY CUSTOM ERROR CLASSES:
- Consistent error response format across all endpoints
- Easy to map to HTTP status codes in exception handlers
- Type-safe error handling in services/repositories
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "UNAUTHORIZED").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class InvalidMagicLinkError(APIError):
    """Magic link could not be consumed (400).

    Covers unknown, expired, already-used and oversized tokens as well as
    store failures during consumption. Every cause renders the same body.

    WHY ONE ERROR FOR EVERY CAUSE:
    - "expired" vs "already used" vs "never existed" is an oracle for
      attackers testing intercepted or guessed links
    - From the user's perspective the remedy is identical: request a new link
    """

    MESSAGE = "This link is invalid or expired. Request a new one."

    def __init__(self) -> None:
        super().__init__(
            code="INVALID_MAGIC_LINK",
            message=self.MESSAGE,
            status_code=400,
        )


class UnauthorizedError(APIError):
    """Authentication required (401).

    Use when no valid session credential is provided.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class InternalError(APIError):
    """Unexpected server error (500).

    Use for unhandled exceptions. Never expose stack traces to clients.
    """

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message=message,
            status_code=500,
        )
