"""Transaction signing — spend key plus per-input view keys.

The verify step returns one view key scalar per input. Adding it to the
scalar derived from the spend key seed gives the private key of the
one-time key that locks the input, which then signs the transaction
digest with Ed25519.

Scalar arithmetic comes from libsodium via PyNaCl's low-level bindings.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from nacl.bindings import (
    crypto_core_ed25519_scalar_add,
    crypto_core_ed25519_scalar_mul,
    crypto_core_ed25519_scalar_reduce,
    crypto_scalarmult_ed25519_base_noclamp,
)

from safe_wallet.errors.definitions import ErrInvalidSpendKey
from safe_wallet.errors.utxo_errors import ConsistencyError
from safe_wallet.utils.crypto import sha512

if TYPE_CHECKING:
    from collections.abc import Sequence

    from safe_wallet.safe.transaction import SafeTransaction
    from safe_wallet.sequencer.models import SafeUtxoOutput

_SEED_SIZE = 32
_SCALAR_SIZE = 32


class TransactionSigner(Protocol):
    """Turns a verified transaction into signed raw hex."""

    def sign(
        self,
        tx: SafeTransaction,
        utxos: Sequence[SafeUtxoOutput],
        views: Sequence[str],
        spend_key: str,
    ) -> str: ...


def _reduce(data: bytes) -> bytes:
    """Reduce 32 or 64 bytes to a canonical scalar."""
    return crypto_core_ed25519_scalar_reduce(data.ljust(64, b"\x00"))


def parse_spend_key(spend_key: str) -> bytes:
    """Decode a spend key seed (hex).

    Raises:
        SafeError: ``ErrInvalidSpendKey`` unless the key is 32 bytes of hex.
    """
    try:
        seed = bytes.fromhex(spend_key)
    except (TypeError, ValueError) as exc:
        raise ErrInvalidSpendKey from exc
    if len(seed) != _SEED_SIZE:
        raise ErrInvalidSpendKey
    return seed


def spend_scalar(spend_key: str) -> bytes:
    """Derive the clamped private scalar of an Ed25519 seed (hex)."""
    seed = parse_spend_key(spend_key)
    h = bytearray(sha512(seed)[:_SCALAR_SIZE])
    h[0] &= 248
    h[31] &= 127
    h[31] |= 64
    return _reduce(bytes(h))


def spend_public_key(spend_key: str) -> str:
    """Public key (hex) matching a spend key seed."""
    return crypto_scalarmult_ed25519_base_noclamp(spend_scalar(spend_key)).hex()


def input_private_key(spend_key: str, view: str) -> bytes:
    """Private scalar of the one-time key an input is locked to."""
    try:
        view_bytes = bytes.fromhex(view)
    except (TypeError, ValueError) as exc:
        msg = f"View key is not hex: {view!r}"
        raise ConsistencyError(msg) from exc
    if len(view_bytes) != _SCALAR_SIZE:
        msg = f"View key must be {_SCALAR_SIZE} bytes, got {len(view_bytes)}"
        raise ConsistencyError(msg)
    return crypto_core_ed25519_scalar_add(_reduce(view_bytes), spend_scalar(spend_key))


def input_public_key(spend_key: str, view: str) -> str:
    """Public one-time key (hex) for a spend key and view pair."""
    return crypto_scalarmult_ed25519_base_noclamp(input_private_key(spend_key, view)).hex()


def sign_digest(private_scalar: bytes, digest: bytes) -> bytes:
    """Ed25519 signature with a raw scalar; verifiable by the derived public key."""
    public = crypto_scalarmult_ed25519_base_noclamp(private_scalar)
    r = _reduce(sha512(private_scalar + digest))
    big_r = crypto_scalarmult_ed25519_base_noclamp(r)
    k = _reduce(sha512(big_r + public + digest))
    s = crypto_core_ed25519_scalar_add(r, crypto_core_ed25519_scalar_mul(k, private_scalar))
    return big_r + s


class Ed25519Signer:
    """Default signer for ledger transactions."""

    def sign(
        self,
        tx: SafeTransaction,
        utxos: Sequence[SafeUtxoOutput],
        views: Sequence[str],
        spend_key: str,
    ) -> str:
        """Sign every input and return the signed raw hex.

        Raises:
            ConsistencyError: If inputs and views do not line up, or a derived
                key is not among the keys of its input.
            SafeError: ``ErrInvalidSpendKey`` for a malformed spend key.
        """
        if not (len(tx.inputs) == len(utxos) == len(views)):
            msg = (
                f"inputs ({len(tx.inputs)}), utxos ({len(utxos)}) and "
                f"views ({len(views)}) must have the same length"
            )
            raise ConsistencyError(msg)

        digest = tx.digest()
        signatures: list[dict[int, bytes]] = []
        for i, (utxo, view) in enumerate(zip(utxos, views, strict=True)):
            inp = tx.inputs[i]
            if (inp.hash, inp.index) != (utxo.transaction_hash, utxo.output_index):
                msg = f"input {i} does not reference output {utxo.output_id}"
                raise ConsistencyError(msg)
            private = input_private_key(spend_key, view)
            public = crypto_scalarmult_ed25519_base_noclamp(private).hex()
            try:
                key_index = utxo.keys.index(public)
            except ValueError:
                msg = f"spend key does not unlock output {utxo.output_id}"
                raise ConsistencyError(msg) from None
            signatures.append({key_index: sign_digest(private, digest)})

        return tx.with_signatures(signatures).encode()
