"""Verify → sign → send protocol for a built transaction.

Each protocol state is its own immutable class and exposes only the
transition that leaves it::

    BuiltTransaction.verify(client)      -> VerifiedTransaction
    VerifiedTransaction.sign(signer, key) -> SignedTransaction
    SignedTransaction.send(client)        -> SentTransaction

so signing before verification, or sending before signing, does not type
check. One request id is minted with the built transaction and carried
through verify and send; the sequencer uses it to deduplicate retries.
A request id that has been verified must not be reused for a transaction
with different inputs.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from typing import TYPE_CHECKING

from safe_wallet.errors.utxo_errors import ConsistencyError
from safe_wallet.sequencer.models import TransactionRequest

if TYPE_CHECKING:
    from collections.abc import Sequence

    from safe_wallet.safe.signer import TransactionSigner
    from safe_wallet.safe.transaction import SafeTransaction
    from safe_wallet.sequencer.models import SafeUtxoOutput, TransactionResponse
    from safe_wallet.sequencer.service import SequencerClient

logger = logging.getLogger(__name__)


def new_request_id() -> str:
    """Mint a fresh idempotency key."""
    return str(uuid.uuid4())


@dataclasses.dataclass(frozen=True)
class BuiltTransaction:
    """Unsigned transaction bound to its request id and selected inputs."""

    request_id: str
    tx: SafeTransaction
    utxos: tuple[SafeUtxoOutput, ...]

    @classmethod
    def create(
        cls,
        tx: SafeTransaction,
        utxos: Sequence[SafeUtxoOutput],
        *,
        request_id: str | None = None,
    ) -> BuiltTransaction:
        """Bind *tx* to a request id, minting one if not given."""
        if tx.is_signed:
            msg = "built transaction must be unsigned"
            raise ConsistencyError(msg)
        if len(tx.inputs) != len(utxos):
            msg = f"{len(tx.inputs)} inputs but {len(utxos)} selected outputs"
            raise ConsistencyError(msg)
        return cls(request_id=request_id or new_request_id(), tx=tx, utxos=tuple(utxos))

    @property
    def raw(self) -> str:
        """Encoded unsigned transaction (hex)."""
        return self.tx.encode()

    async def verify(self, client: SequencerClient) -> VerifiedTransaction:
        """Submit the unsigned transaction and collect per-input view keys.

        Raises:
            SequencerError: If the sequencer rejects the transaction.
            ConsistencyError: If the answer belongs to another request or
                does not carry exactly one view per input.
        """
        responses = await client.transaction_request(
            [TransactionRequest(request_id=self.request_id, raw=self.raw)]
        )
        response = _single_response(responses, self.request_id, "verify")
        views = response.views
        if views is None or len(views) != len(self.tx.inputs):
            got = "no" if views is None else len(views)
            msg = f"verify returned {got} views for {len(self.tx.inputs)} inputs"
            raise ConsistencyError(msg)

        logger.info("Transaction %s verified with %d inputs", self.request_id, len(views))
        return VerifiedTransaction(
            request_id=self.request_id,
            tx=self.tx,
            utxos=self.utxos,
            views=tuple(views),
        )


@dataclasses.dataclass(frozen=True)
class VerifiedTransaction:
    """Unsigned transaction plus the view keys returned by verification."""

    request_id: str
    tx: SafeTransaction
    utxos: tuple[SafeUtxoOutput, ...]
    views: tuple[str, ...]

    def sign(self, signer: TransactionSigner, spend_key: str) -> SignedTransaction:
        """Sign locally with the spend key; no network call."""
        raw = signer.sign(self.tx, self.utxos, self.views, spend_key)
        return SignedTransaction(request_id=self.request_id, raw=raw)


@dataclasses.dataclass(frozen=True)
class SignedTransaction:
    """Signed raw transaction ready for broadcast."""

    request_id: str
    raw: str

    async def send(self, client: SequencerClient) -> SentTransaction:
        """Broadcast under the same request id used for verification.

        Sending the same raw bytes with the same request id again returns
        the already accepted record instead of moving funds twice.
        """
        responses = await client.transactions(
            [TransactionRequest(request_id=self.request_id, raw=self.raw)]
        )
        if not responses:
            msg = f"send returned no records for {self.request_id}"
            raise ConsistencyError(msg)
        for response in responses:
            if response.request_id != self.request_id:
                msg = f"send returned request {response.request_id}, expected {self.request_id}"
                raise ConsistencyError(msg)

        logger.info("Transaction %s sent, state %s", self.request_id, responses[0].state)
        return SentTransaction(request_id=self.request_id, records=tuple(responses))


@dataclasses.dataclass(frozen=True)
class SentTransaction:
    """Terminal state: records accepted by the sequencer."""

    request_id: str
    records: tuple[TransactionResponse, ...]


def _single_response(
    responses: Sequence[TransactionResponse], request_id: str, step: str
) -> TransactionResponse:
    if len(responses) != 1:
        msg = f"{step} returned {len(responses)} records for one request"
        raise ConsistencyError(msg)
    response = responses[0]
    if response.request_id != request_id:
        msg = f"{step} returned request {response.request_id}, expected {request_id}"
        raise ConsistencyError(msg)
    return response
