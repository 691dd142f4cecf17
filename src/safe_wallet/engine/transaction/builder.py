"""Transaction builder — recipients, ghost keys and unsigned transactions.

Everything here except ``TransactionBuilder.request_ghost_keys`` is pure:
the same inputs, recipients, ghost keys and memo always give the same
transaction bytes.
"""

from __future__ import annotations

import dataclasses
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from safe_wallet.config.settings import MAX_EXTRA_SIZE
from safe_wallet.errors.definitions import (
    ErrExtraTooLong,
    ErrInvalidThreshold,
    ErrMissingMembers,
    ErrMixedAssets,
    ErrNoInputs,
)
from safe_wallet.errors.utxo_errors import ConsistencyError
from safe_wallet.safe.transaction import SafeInput, SafeOutput, SafeTransaction, threshold_script
from safe_wallet.sequencer.models import GhostKeyRequest
from safe_wallet.utils.amount import format_amount, from_atomic, parse_amount, to_atomic

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from safe_wallet.engine.client import SafeWalletEngine
    from safe_wallet.sequencer.models import SafeGhostKey, SafeUtxoOutput


@dataclasses.dataclass(frozen=True)
class Recipient:
    """A destination: ``threshold`` of ``members`` can spend ``amount``."""

    members: tuple[str, ...]
    threshold: int
    amount: str


def build_recipient(members: Sequence[str], threshold: int, amount: str | Decimal) -> Recipient:
    """Validate and build a single recipient.

    Raises:
        SafeError: On empty members, bad threshold or bad amount.
    """
    if not members:
        raise ErrMissingMembers
    if not 0 < threshold <= len(members):
        raise ErrInvalidThreshold
    value = parse_amount(amount)
    return Recipient(members=tuple(members), threshold=threshold, amount=_canonical(value))


def build_recipients(
    members: Sequence[str],
    threshold: int,
    amount: str | Decimal,
    change: Decimal,
    self_receivers: Sequence[str],
    self_threshold: int,
) -> list[Recipient]:
    """Payment recipient first, then change back to the sender if any.

    Args:
        members: Destination member ids.
        threshold: Destination threshold.
        amount: Amount to pay.
        change: Leftover from the selection.
        self_receivers: Receiver set of the first selected input.
        self_threshold: Receiver threshold of the first selected input.
    """
    recipients = [build_recipient(members, threshold, amount)]
    if change > 0:
        recipients.append(build_recipient(self_receivers, self_threshold, change))
    return recipients


def _uuid4_hint() -> str:
    return str(uuid.uuid4())


def build_ghost_key_requests(
    recipients: Sequence[Recipient],
    hint_factory: Callable[[], str] = _uuid4_hint,
) -> list[GhostKeyRequest]:
    """One request per recipient with indices ``0..n-1`` and fresh hints."""
    return [
        GhostKeyRequest(receivers=r.members, index=i, hint=hint_factory())
        for i, r in enumerate(recipients)
    ]


def check_ghost_keys(
    requests: Sequence[GhostKeyRequest], ghost_keys: Sequence[SafeGhostKey]
) -> None:
    """Reject ghost keys that do not line up with their requests.

    Raises:
        ConsistencyError: On a length mismatch, an out-of-place index, or a
            key count that differs from the receiver count.
    """
    if len(ghost_keys) != len(requests):
        msg = f"expected {len(requests)} ghost keys, got {len(ghost_keys)}"
        raise ConsistencyError(msg)
    for request, ghost in zip(requests, ghost_keys, strict=True):
        if ghost.index is not None and ghost.index != request.index:
            msg = f"ghost key at position {request.index} carries index {ghost.index}"
            raise ConsistencyError(msg)
        if len(ghost.keys) != len(request.receivers):
            msg = (
                f"ghost key {request.index} has {len(ghost.keys)} keys "
                f"for {len(request.receivers)} receivers"
            )
            raise ConsistencyError(msg)


def build_transaction(
    utxos: Sequence[SafeUtxoOutput],
    recipients: Sequence[Recipient],
    ghost_keys: Sequence[SafeGhostKey],
    extra: str | bytes = b"",
    *,
    references: Sequence[str] = (),
    max_extra_size: int = MAX_EXTRA_SIZE,
) -> SafeTransaction:
    """Compose an unsigned transaction.

    Raises:
        SafeError: On no inputs, mixed assets or an oversized memo.
        ConsistencyError: If recipients and ghost keys differ in length.
    """
    if not utxos:
        raise ErrNoInputs
    if len(recipients) != len(ghost_keys):
        msg = f"{len(recipients)} recipients but {len(ghost_keys)} ghost keys"
        raise ConsistencyError(msg)
    extra_bytes = extra.encode("utf-8") if isinstance(extra, str) else bytes(extra)
    if len(extra_bytes) > max_extra_size:
        raise ErrExtraTooLong

    asset = utxos[0].asset
    if any(u.asset != asset for u in utxos):
        raise ErrMixedAssets

    inputs = tuple(SafeInput(hash=u.transaction_hash, index=u.output_index) for u in utxos)
    outputs = tuple(
        SafeOutput(
            amount=r.amount,
            keys=g.keys,
            mask=g.mask,
            script=threshold_script(r.threshold),
        )
        for r, g in zip(recipients, ghost_keys, strict=True)
    )
    return SafeTransaction(
        asset=asset,
        inputs=inputs,
        outputs=outputs,
        extra=extra_bytes,
        references=tuple(references),
    )


def _canonical(amount: Decimal) -> str:
    """Amount string exactly as the codec reproduces it."""
    return format_amount(from_atomic(to_atomic(amount)))


class TransactionBuilder:
    """Fetches ghost keys and assembles unsigned transactions."""

    def __init__(self, engine: SafeWalletEngine) -> None:
        self._engine = engine

    async def request_ghost_keys(
        self,
        recipients: Sequence[Recipient],
        *,
        hint_factory: Callable[[], str] = _uuid4_hint,
    ) -> list[SafeGhostKey]:
        """Fetch one-time keys for all recipients in a single batch call."""
        requests = build_ghost_key_requests(recipients, hint_factory)
        ghost_keys = await self._engine.sequencer.ghost_keys(requests)
        check_ghost_keys(requests, ghost_keys)
        return ghost_keys

    def build(
        self,
        utxos: Sequence[SafeUtxoOutput],
        recipients: Sequence[Recipient],
        ghost_keys: Sequence[SafeGhostKey],
        extra: str | bytes = b"",
    ) -> SafeTransaction:
        """Build with the configured memo limit."""
        return build_transaction(
            utxos,
            recipients,
            ghost_keys,
            extra,
            max_extra_size=self._engine.config.utxo.max_extra_size,
        )
