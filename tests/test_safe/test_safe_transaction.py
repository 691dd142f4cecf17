"""Tests for the safe transaction codec."""

from __future__ import annotations

import pytest

from safe_wallet.safe.transaction import (
    MAGIC,
    TX_VERSION,
    SafeInput,
    SafeOutput,
    SafeTransaction,
    threshold_script,
)

ASSET = "aa" * 32


def _tx(**overrides) -> SafeTransaction:
    fields = {
        "asset": ASSET,
        "inputs": (SafeInput(hash="01" * 32, index=0), SafeInput(hash="02" * 32, index=3)),
        "outputs": (
            SafeOutput(amount="1.5", keys=("03" * 32,), mask="04" * 32, script="fffe01"),
            SafeOutput(
                amount="0.00000001",
                keys=("05" * 32, "06" * 32),
                mask="07" * 32,
                script="fffe02",
            ),
        ),
        "extra": b"memo",
    }
    fields.update(overrides)
    return SafeTransaction(**fields)


class TestThresholdScript:
    def test_encoding(self) -> None:
        assert threshold_script(1) == "fffe01"
        assert threshold_script(2) == "fffe02"
        assert threshold_script(255) == "fffeff"

    @pytest.mark.parametrize("threshold", [0, -1, 256])
    def test_invalid(self, threshold: int) -> None:
        with pytest.raises(ValueError, match="Invalid threshold"):
            threshold_script(threshold)


class TestEncoding:
    def test_header(self) -> None:
        raw = _tx().serialize()
        assert raw[:2] == MAGIC
        assert raw[2:4] == bytes([0, TX_VERSION])
        assert raw[4:36] == bytes.fromhex(ASSET)

    def test_decode_restores_fields(self) -> None:
        tx = _tx(references=("08" * 32,))
        decoded = SafeTransaction.decode(tx.encode())
        assert decoded == tx
        assert [o.amount for o in decoded.outputs] == ["1.5", "0.00000001"]
        assert decoded.signatures is None

    def test_whole_amount_decodes_without_fraction(self) -> None:
        out = SafeOutput(amount="20", keys=("03" * 32,), mask="04" * 32, script="fffe01")
        decoded = SafeTransaction.decode(_tx(outputs=(out,)).encode())
        assert decoded.outputs[0].amount == "20"

    def test_deterministic(self) -> None:
        assert _tx().encode() == _tx().encode()

    def test_bad_hash_length(self) -> None:
        tx = _tx(inputs=(SafeInput(hash="01" * 16, index=0),))
        with pytest.raises(ValueError, match="32-byte hash"):
            tx.serialize()

    def test_bad_magic(self) -> None:
        raw = bytearray(_tx().serialize())
        raw[0] = 0x00
        with pytest.raises(ValueError, match="magic"):
            SafeTransaction.deserialize(bytes(raw))

    def test_truncated(self) -> None:
        with pytest.raises(ValueError, match="end of stream"):
            SafeTransaction.deserialize(_tx().serialize()[:-3])

    def test_trailing_bytes(self) -> None:
        with pytest.raises(ValueError, match="Trailing"):
            SafeTransaction.deserialize(_tx().serialize() + b"\x00")


class TestSignatures:
    def test_with_signatures(self) -> None:
        tx = _tx()
        signed = tx.with_signatures([{0: b"\x01" * 64}, {1: b"\x02" * 64}])
        assert signed.is_signed
        assert not tx.is_signed

        decoded = SafeTransaction.decode(signed.encode())
        assert decoded.signatures == ({0: b"\x01" * 64}, {1: b"\x02" * 64})

    def test_signature_count_must_match_inputs(self) -> None:
        with pytest.raises(ValueError, match="signature maps"):
            _tx().with_signatures([{0: b"\x01" * 64}])

    def test_signature_size_checked(self) -> None:
        signed = _tx().with_signatures([{0: b"\x01" * 10}, {0: b"\x01" * 64}])
        with pytest.raises(ValueError, match="64-byte signature"):
            signed.serialize()

    def test_digest_ignores_signatures(self) -> None:
        tx = _tx()
        signed = tx.with_signatures([{0: b"\x01" * 64}, {0: b"\x02" * 64}])
        assert signed.digest() == tx.digest()
        assert signed.unsigned() == tx

    def test_digest_covers_memo(self) -> None:
        assert _tx(extra=b"a").digest() != _tx(extra=b"b").digest()
