"""Safe transaction serialisation — deterministic binary encoding.

Provides pure-Python transaction serialization and deserialization:
- SafeInput / SafeOutput data classes
- SafeTransaction with encode / decode / digest
- Threshold script encoding

Layout (all integers big-endian)::

    magic(2) version(2) asset(32)
    u16 n_inputs   { hash(32) u16 index }
    u16 n_outputs  { type(2) u16 len amount_units  u16 n_keys { key(32) }
                     mask(32) u16 len script }
    u16 n_refs     { hash(32) }
    u32 len extra
    u16 n_sig_maps { u16 n { u16 key_index sig(64) } }
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, replace
from io import BytesIO

from safe_wallet.utils.amount import format_amount, from_atomic, to_atomic
from safe_wallet.utils.crypto import sha3_256

MAGIC = b"\x77\x77"
TX_VERSION = 5

OUTPUT_TYPE_SCRIPT = 0x00

_HASH_SIZE = 32
_SIGNATURE_SIZE = 64
_MAX_U16 = 0xFFFF

# Threshold script operators: compare the signature count with the threshold
_OP_CMP = 0xFF
_OP_SUM = 0xFE


def threshold_script(threshold: int) -> str:
    """Encode a ``threshold``-of-n spending script as hex."""
    if not 0 < threshold <= 0xFF:
        msg = f"Invalid threshold {threshold}"
        raise ValueError(msg)
    return bytes([_OP_CMP, _OP_SUM, threshold]).hex()


# ---------------------------------------------------------------------------
# Low-level stream helpers
# ---------------------------------------------------------------------------


def _write_u16(buf: BytesIO, n: int) -> None:
    if not 0 <= n <= _MAX_U16:
        msg = f"Value {n} does not fit in u16"
        raise ValueError(msg)
    buf.write(struct.pack(">H", n))


def _write_hash(buf: BytesIO, value: str) -> None:
    raw = bytes.fromhex(value)
    if len(raw) != _HASH_SIZE:
        msg = f"Expected {_HASH_SIZE}-byte hash, got {len(raw)} bytes"
        raise ValueError(msg)
    buf.write(raw)


def _write_bytes(buf: BytesIO, data: bytes) -> None:
    _write_u16(buf, len(data))
    buf.write(data)


def _read_exact(stream: BytesIO, n: int) -> bytes:
    data = stream.read(n)
    if len(data) != n:
        msg = "Unexpected end of stream"
        raise ValueError(msg)
    return data


def _read_u16(stream: BytesIO) -> int:
    return struct.unpack(">H", _read_exact(stream, 2))[0]


def _read_hash(stream: BytesIO) -> str:
    return _read_exact(stream, _HASH_SIZE).hex()


def _read_bytes(stream: BytesIO) -> bytes:
    return _read_exact(stream, _read_u16(stream))


# ---------------------------------------------------------------------------
# SafeInput
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SafeInput:
    """A reference to the output being spent.

    Attributes:
        hash: Hex hash of the transaction holding the output.
        index: Output index in that transaction.
    """

    hash: str
    index: int

    def write(self, buf: BytesIO) -> None:
        """Serialize the input into *buf*."""
        _write_hash(buf, self.hash)
        _write_u16(buf, self.index)

    @classmethod
    def read(cls, stream: BytesIO) -> SafeInput:
        """Deserialize an input from a byte stream."""
        return cls(hash=_read_hash(stream), index=_read_u16(stream))


# ---------------------------------------------------------------------------
# SafeOutput
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SafeOutput:
    """A transaction output locked to one-time ghost keys.

    Attributes:
        amount: Decimal amount string.
        keys: One-time public keys (hex), one per receiver.
        mask: One-time mask public key (hex).
        script: Threshold script (hex).
        type: Output type (script outputs only).
    """

    amount: str
    keys: tuple[str, ...]
    mask: str
    script: str
    type: int = OUTPUT_TYPE_SCRIPT

    def write(self, buf: BytesIO) -> None:
        """Serialize the output into *buf*."""
        buf.write(bytes([0x00, self.type]))
        units = to_atomic(self.amount)
        _write_bytes(buf, units.to_bytes((units.bit_length() + 7) // 8, "big"))
        _write_u16(buf, len(self.keys))
        for key in self.keys:
            _write_hash(buf, key)
        _write_hash(buf, self.mask)
        _write_bytes(buf, bytes.fromhex(self.script))

    @classmethod
    def read(cls, stream: BytesIO) -> SafeOutput:
        """Deserialize an output from a byte stream."""
        type_ = _read_exact(stream, 2)[1]
        units = int.from_bytes(_read_bytes(stream), "big")
        keys = tuple(_read_hash(stream) for _ in range(_read_u16(stream)))
        mask = _read_hash(stream)
        script = _read_bytes(stream).hex()
        return cls(
            amount=format_amount(from_atomic(units)),
            keys=keys,
            mask=mask,
            script=script,
            type=type_,
        )


# ---------------------------------------------------------------------------
# SafeTransaction
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SafeTransaction:
    """A ledger transaction, unsigned until ``signatures`` is set.

    Attributes:
        asset: Kernel asset hash (hex) shared by all inputs.
        inputs: Outputs being spent, in selection order.
        outputs: New outputs, index-aligned with the recipients.
        extra: Memo payload.
        references: Referenced transaction hashes.
        signatures: One ``{key_index: signature}`` map per input.
    """

    asset: str
    inputs: tuple[SafeInput, ...]
    outputs: tuple[SafeOutput, ...]
    extra: bytes = b""
    references: tuple[str, ...] = ()
    version: int = TX_VERSION
    signatures: tuple[dict[int, bytes], ...] | None = None

    @property
    def is_signed(self) -> bool:
        """Check whether signatures are attached."""
        return self.signatures is not None

    def unsigned(self) -> SafeTransaction:
        """Return a copy without signatures."""
        return replace(self, signatures=None)

    def with_signatures(self, signatures: list[dict[int, bytes]]) -> SafeTransaction:
        """Return a copy carrying one signature map per input."""
        if len(signatures) != len(self.inputs):
            msg = f"Expected {len(self.inputs)} signature maps, got {len(signatures)}"
            raise ValueError(msg)
        return replace(self, signatures=tuple(dict(s) for s in signatures))

    def serialize(self) -> bytes:
        """Serialize the transaction to raw bytes."""
        buf = BytesIO()
        buf.write(MAGIC)
        buf.write(bytes([0x00, self.version]))
        _write_hash(buf, self.asset)

        _write_u16(buf, len(self.inputs))
        for inp in self.inputs:
            inp.write(buf)
        _write_u16(buf, len(self.outputs))
        for out in self.outputs:
            out.write(buf)
        _write_u16(buf, len(self.references))
        for ref in self.references:
            _write_hash(buf, ref)

        buf.write(struct.pack(">I", len(self.extra)))
        buf.write(self.extra)

        sig_maps = self.signatures or ()
        _write_u16(buf, len(sig_maps))
        for sig_map in sig_maps:
            _write_u16(buf, len(sig_map))
            for key_index in sorted(sig_map):
                sig = sig_map[key_index]
                if len(sig) != _SIGNATURE_SIZE:
                    msg = f"Expected {_SIGNATURE_SIZE}-byte signature, got {len(sig)}"
                    raise ValueError(msg)
                _write_u16(buf, key_index)
                buf.write(sig)
        return buf.getvalue()

    def encode(self) -> str:
        """Serialize to hex string."""
        return self.serialize().hex()

    def digest(self) -> bytes:
        """Hash of the unsigned encoding; this is what inputs sign."""
        return sha3_256(self.unsigned().serialize())

    @classmethod
    def deserialize(cls, data: bytes) -> SafeTransaction:
        """Deserialize a transaction from raw bytes."""
        stream = BytesIO(data)
        if _read_exact(stream, 2) != MAGIC:
            msg = "Invalid transaction magic"
            raise ValueError(msg)
        version = _read_exact(stream, 2)[1]
        asset = _read_hash(stream)
        inputs = tuple(SafeInput.read(stream) for _ in range(_read_u16(stream)))
        outputs = tuple(SafeOutput.read(stream) for _ in range(_read_u16(stream)))
        references = tuple(_read_hash(stream) for _ in range(_read_u16(stream)))
        extra = _read_exact(stream, struct.unpack(">I", _read_exact(stream, 4))[0])

        signatures: list[dict[int, bytes]] = []
        for _ in range(_read_u16(stream)):
            sig_map: dict[int, bytes] = {}
            for _ in range(_read_u16(stream)):
                key_index = _read_u16(stream)
                sig_map[key_index] = _read_exact(stream, _SIGNATURE_SIZE)
            signatures.append(sig_map)

        if stream.read(1):
            msg = "Trailing bytes after transaction"
            raise ValueError(msg)
        return cls(
            asset=asset,
            inputs=inputs,
            outputs=outputs,
            extra=extra,
            references=references,
            version=version,
            signatures=tuple(signatures) if signatures else None,
        )

    @classmethod
    def decode(cls, raw: str) -> SafeTransaction:
        """Deserialize from a hex string."""
        return cls.deserialize(bytes.fromhex(raw))
