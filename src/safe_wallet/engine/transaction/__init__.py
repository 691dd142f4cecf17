"""Transaction assembly and the verify/sign/send protocol."""

from safe_wallet.engine.transaction.builder import (
    Recipient,
    TransactionBuilder,
    build_ghost_key_requests,
    build_recipients,
    build_transaction,
    check_ghost_keys,
)
from safe_wallet.engine.transaction.flow import (
    BuiltTransaction,
    SentTransaction,
    SignedTransaction,
    VerifiedTransaction,
    new_request_id,
)

__all__ = [
    "BuiltTransaction",
    "Recipient",
    "SentTransaction",
    "SignedTransaction",
    "TransactionBuilder",
    "VerifiedTransaction",
    "build_ghost_key_requests",
    "build_recipients",
    "build_transaction",
    "check_ghost_keys",
    "new_request_id",
]
