"""Coin selection and transaction assembly errors."""

from __future__ import annotations

from safe_wallet.errors.safe_errors import SafeError


class NotEnoughOutputsError(SafeError):
    """Unspent outputs do not add up to the desired amount."""

    def __init__(self, message: str = "not enough outputs", *, status_code: int = 422) -> None:
        super().__init__(message, status_code=status_code, code="not-enough-outputs")


class MaxCountNotEnoughUtxoError(SafeError):
    """Covering the amount needs more inputs than one transaction may carry.

    The caller is expected to consolidate small outputs and try again.
    """

    def __init__(
        self,
        message: str = "too many outputs required, consolidate utxos first",
        *,
        status_code: int = 422,
    ) -> None:
        super().__init__(message, status_code=status_code, code="max-count-not-enough-utxo")


class ConsistencyError(SafeError):
    """An internal invariant does not hold; continuing could misdirect funds."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=500, code="consistency-error")
