"""Sequencer API errors."""

from __future__ import annotations

from safe_wallet.errors.safe_errors import SafeError


class SequencerError(SafeError):
    """Error body returned by the sequencer, or an unusable response.

    Attributes:
        error_code: Numeric code from the sequencer error body (0 if absent).
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 502,
        error_code: int = 0,
    ) -> None:
        super().__init__(message, status_code=status_code, code="sequencer-error")
        self.error_code = error_code


class SequencerUnavailableError(SequencerError):
    """The request never got an answer (timeout, connection failure)."""

    retryable = True

    def __init__(self, message: str, *, status_code: int = 503) -> None:
        super().__init__(message, status_code=status_code)
        self.code = "sequencer-unavailable"


class MalformedPayloadError(SequencerError):
    """A sequencer payload is missing required fields."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=502)
        self.code = "malformed-payload"
