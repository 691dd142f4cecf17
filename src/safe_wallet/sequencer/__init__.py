"""Sequencer — remote output store, key exchange and transaction endpoints."""

from safe_wallet.sequencer.models import (
    Account,
    DepositEntry,
    GhostKeyRequest,
    OutputState,
    SafeGhostKey,
    SafeUtxoOutput,
    TransactionRequest,
    TransactionResponse,
)
from safe_wallet.sequencer.service import SequencerClient

__all__ = [
    "Account",
    "DepositEntry",
    "GhostKeyRequest",
    "OutputState",
    "SafeGhostKey",
    "SafeUtxoOutput",
    "SequencerClient",
    "TransactionRequest",
    "TransactionResponse",
]
