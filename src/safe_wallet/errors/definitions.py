"""Pre-defined error instances for validation and lookup failures."""

from __future__ import annotations

from safe_wallet.errors.safe_errors import SafeError

# -- Validation ------------------------------------------------------------

ErrClientUserIdEmpty = SafeError(
    "client user id is empty", status_code=400, code="client-user-id-empty"
)
ErrInvalidAmount = SafeError("invalid amount", status_code=400, code="invalid-amount")
ErrInvalidThreshold = SafeError(
    "threshold must be between 1 and the number of members",
    status_code=400,
    code="invalid-threshold",
)
ErrMissingMembers = SafeError(
    "missing required field: members", status_code=400, code="missing-members"
)
ErrInvalidSpendKey = SafeError(
    "spend key must be 32 bytes of hex", status_code=400, code="invalid-spend-key"
)

# -- Transaction -----------------------------------------------------------

ErrNoInputs = SafeError("transaction has no inputs", status_code=400, code="no-inputs")
ErrMixedAssets = SafeError(
    "inputs belong to different assets", status_code=400, code="mixed-assets"
)
ErrExtraTooLong = SafeError("extra data is too long", status_code=400, code="extra-too-long")

# -- Not Found -------------------------------------------------------------

ErrTransactionNotFound = SafeError(
    "transaction not found", status_code=404, code="transaction-not-found"
)
