"""Sequencer data models — outputs, ghost keys, transaction requests.

Data classes representing sequencer API request/response objects. Every
``from_dict`` checks the fields the engine relies on and raises
``MalformedPayloadError`` instead of building a partial record.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from safe_wallet.errors.sequencer_errors import MalformedPayloadError

# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _require(data: Any, kind: str, *keys: str) -> dict[str, Any]:
    """Ensure *data* is a dict holding every key in *keys*."""
    if not isinstance(data, dict):
        msg = f"{kind}: expected an object, got {type(data).__name__}"
        raise MalformedPayloadError(msg)
    missing = [k for k in keys if data.get(k) is None]
    if missing:
        msg = f"{kind}: missing required field(s) {', '.join(missing)}"
        raise MalformedPayloadError(msg)
    return data


def _int_field(data: dict[str, Any], kind: str, key: str) -> int:
    """Read an integer field, rejecting values that are not whole numbers."""
    try:
        return int(data[key])
    except (TypeError, ValueError) as exc:
        msg = f"{kind}: {key} is not an integer: {data[key]!r}"
        raise MalformedPayloadError(msg) from exc


def _amount_field(data: dict[str, Any], kind: str, key: str) -> str:
    """Read a finite, non-negative decimal amount and keep its exact text."""
    text = str(data[key])
    try:
        amount = Decimal(text)
    except InvalidOperation as exc:
        msg = f"{kind}: {key} is not a decimal: {text!r}"
        raise MalformedPayloadError(msg) from exc
    if not amount.is_finite() or amount < 0:
        msg = f"{kind}: {key} must be finite and non-negative, got {text!r}"
        raise MalformedPayloadError(msg)
    return text


# ---------------------------------------------------------------------------
# Output state enum
# ---------------------------------------------------------------------------


class OutputState(enum.StrEnum):
    """Lifecycle of a ledger output: unspent → signed → spent."""

    UNSPENT = "unspent"
    SIGNED = "signed"
    SPENT = "spent"


# ---------------------------------------------------------------------------
# SafeUtxoOutput — one page entry of GET /safe/outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SafeUtxoOutput:
    """A single output owned by a user or multi-signature group.

    Attributes:
        output_id: Globally unique output identifier.
        transaction_hash: Hash of the transaction that created the output.
        output_index: Position of the output in that transaction.
        asset: Kernel asset hash (hex).
        amount: Decimal amount as a string.
        sequence: Monotonic sequence number assigned by the sequencer.
        receivers: Member ids able to spend the output.
        receivers_threshold: Signatures required among ``receivers``.
        state: Raw state string (see ``OutputState``).
    """

    output_id: str
    transaction_hash: str
    output_index: int
    asset: str
    amount: str
    sequence: int
    receivers: tuple[str, ...]
    receivers_threshold: int
    state: str = OutputState.UNSPENT.value
    asset_id: str = ""
    receivers_hash: str = ""
    keys: tuple[str, ...] = ()
    mask: str = ""
    extra: str = ""
    request_id: str = ""
    created_at: str = ""
    updated_at: str = ""

    @property
    def amount_decimal(self) -> Decimal:
        """Amount as an exact decimal."""
        return Decimal(self.amount)

    @property
    def output_state(self) -> OutputState:
        """Parse the raw state string."""
        return OutputState(self.state)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SafeUtxoOutput:
        """Create an output from a sequencer JSON object."""
        data = _require(
            data,
            "output",
            "output_id",
            "transaction_hash",
            "output_index",
            "asset",
            "amount",
            "sequence",
            "receivers",
            "receivers_threshold",
        )
        return cls(
            output_id=data["output_id"],
            transaction_hash=data["transaction_hash"],
            output_index=_int_field(data, "output", "output_index"),
            asset=data["asset"],
            amount=_amount_field(data, "output", "amount"),
            sequence=_int_field(data, "output", "sequence"),
            receivers=tuple(data["receivers"]),
            receivers_threshold=_int_field(data, "output", "receivers_threshold"),
            state=data.get("state", OutputState.UNSPENT.value),
            asset_id=data.get("asset_id", ""),
            receivers_hash=data.get("receivers_hash", ""),
            keys=tuple(data.get("keys") or ()),
            mask=data.get("mask", ""),
            extra=data.get("extra", ""),
            request_id=data.get("request_id", ""),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )


# ---------------------------------------------------------------------------
# Deposit entries and accounts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DepositEntry:
    """A deposit address handed out for a chain."""

    entry_id: str
    chain_id: str
    destination: str
    tag: str = ""
    members: tuple[str, ...] = ()
    threshold: int = 0
    signature: str = ""
    is_primary: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DepositEntry:
        """Create a deposit entry from a sequencer JSON object."""
        data = _require(data, "deposit entry", "entry_id", "chain_id", "destination")
        return cls(
            entry_id=data["entry_id"],
            chain_id=data["chain_id"],
            destination=data["destination"],
            tag=data.get("tag", ""),
            members=tuple(data.get("members") or ()),
            threshold=int(data.get("threshold", 0)),
            signature=data.get("signature", ""),
            is_primary=bool(data.get("is_primary", False)),
        )


@dataclass(frozen=True)
class Account:
    """Account record returned after registering a spend public key."""

    user_id: str
    full_name: str = ""
    session_id: str = ""
    has_safe: bool = False
    spend_public_key: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Account:
        """Create an account from a sequencer JSON object."""
        data = _require(data, "account", "user_id")
        return cls(
            user_id=data["user_id"],
            full_name=data.get("full_name", ""),
            session_id=data.get("session_id", ""),
            has_safe=bool(data.get("has_safe", False)),
            spend_public_key=data.get("spend_public_key", ""),
        )


# ---------------------------------------------------------------------------
# Ghost keys
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GhostKeyRequest:
    """Request for one-time keys of the recipient at ``index``."""

    receivers: tuple[str, ...]
    index: int
    hint: str

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the sequencer JSON format."""
        return {"receivers": list(self.receivers), "index": self.index, "hint": self.hint}


@dataclass(frozen=True)
class SafeGhostKey:
    """One-time output keys and mask for a single recipient.

    ``index`` is only set when the sequencer echoes it back.
    """

    mask: str
    keys: tuple[str, ...]
    index: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SafeGhostKey:
        """Create a ghost key from a sequencer JSON object."""
        data = _require(data, "ghost key", "mask", "keys")
        if not data["keys"]:
            msg = "ghost key: keys must not be empty"
            raise MalformedPayloadError(msg)
        index = data.get("index")
        return cls(
            mask=data["mask"],
            keys=tuple(data["keys"]),
            index=int(index) if index is not None else None,
        )


# ---------------------------------------------------------------------------
# Transaction requests / responses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransactionRequest:
    """Raw transaction hex submitted under an idempotency key."""

    request_id: str
    raw: str

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the sequencer JSON format."""
        return {"request_id": self.request_id, "raw": self.raw}


@dataclass(frozen=True)
class TransactionResponse:
    """Transaction record returned by verify, send and lookup calls.

    Attributes:
        request_id: Idempotency key the transaction was submitted under.
        views: Per-input view key signatures (verify responses only).
        state: Sequencer state, e.g. ``unspent`` or ``spent``.
    """

    request_id: str
    transaction_hash: str = ""
    state: str = ""
    asset: str = ""
    amount: str = ""
    extra: str = ""
    raw_transaction: str = ""
    user_id: str = ""
    snapshot_id: str = ""
    snapshot_hash: str = ""
    created_at: str = ""
    updated_at: str = ""
    views: tuple[str, ...] | None = None
    receivers: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransactionResponse:
        """Create a transaction response from a sequencer JSON object."""
        data = _require(data, "transaction", "request_id")
        views = data.get("views")
        return cls(
            request_id=data["request_id"],
            transaction_hash=data.get("transaction_hash", ""),
            state=data.get("state", ""),
            asset=data.get("asset", ""),
            amount=str(data.get("amount", "")),
            extra=data.get("extra", ""),
            raw_transaction=data.get("raw_transaction", ""),
            user_id=data.get("user_id", ""),
            snapshot_id=data.get("snapshot_id", ""),
            snapshot_hash=data.get("snapshot_hash", ""),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
            views=tuple(views) if views is not None else None,
            receivers=tuple(data.get("receivers") or ()),
        )
