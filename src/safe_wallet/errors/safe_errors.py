"""SafeError — base exception class for all safe-wallet errors."""

from __future__ import annotations


class SafeError(Exception):
    """Base error for all safe wallet operations.

    Attributes:
        message: Human-readable error description.
        status_code: Suggested HTTP status code.
        code: Machine-readable error code string.
        retryable: Whether repeating the same call may succeed.
    """

    retryable = False

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 500,
        code: str = "safe-error",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
