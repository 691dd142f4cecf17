"""Tests for recipients, ghost key requests and transaction assembly."""

from __future__ import annotations

import json
from decimal import Decimal
from itertools import count

import pytest
from fakes import USER_ID, output_dict

from safe_wallet.config.settings import UTXOConfig
from safe_wallet.engine.transaction.builder import (
    Recipient,
    build_ghost_key_requests,
    build_recipient,
    build_recipients,
    build_transaction,
    check_ghost_keys,
)
from safe_wallet.errors import definitions as defs
from safe_wallet.errors.safe_errors import SafeError
from safe_wallet.errors.utxo_errors import ConsistencyError
from safe_wallet.safe.transaction import SafeTransaction
from safe_wallet.sequencer.models import GhostKeyRequest, SafeGhostKey, SafeUtxoOutput

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _utxos(*amounts: str, asset: str | None = None) -> list[SafeUtxoOutput]:
    extra = {"asset": asset} if asset else {}
    return [
        SafeUtxoOutput.from_dict(output_dict(i, a, **extra)) for i, a in enumerate(amounts, 1)
    ]


def _ghost(index: int, n_keys: int = 1) -> SafeGhostKey:
    return SafeGhostKey(
        mask=f"{index + 1:02x}" * 32,
        keys=tuple(f"{index + 0x10 + k:02x}" * 32 for k in range(n_keys)),
        index=index,
    )


def _hints():
    counter = count()
    return lambda: f"hint-{next(counter)}"


# ---------------------------------------------------------------------------
# Recipients
# ---------------------------------------------------------------------------


class TestRecipients:
    def test_payment_and_change(self) -> None:
        recipients = build_recipients(
            ["user-2"], 1, "1.5", Decimal("0.5"), (USER_ID,), 1
        )
        assert recipients == [
            Recipient(members=("user-2",), threshold=1, amount="1.5"),
            Recipient(members=(USER_ID,), threshold=1, amount="0.5"),
        ]

    def test_no_change_output_when_exact(self) -> None:
        recipients = build_recipients(["user-2"], 1, "2", Decimal(0), (USER_ID,), 1)
        assert len(recipients) == 1

    def test_change_goes_to_first_input_receivers(self) -> None:
        recipients = build_recipients(
            ["user-2"], 1, "1", Decimal("0.25"), ("a", "b", "c"), 2
        )
        assert recipients[1].members == ("a", "b", "c")
        assert recipients[1].threshold == 2

    def test_amount_canonicalized(self) -> None:
        assert build_recipient(["u"], 1, "1.50000000").amount == "1.5"
        assert build_recipient(["u"], 1, "0.00000001").amount == "0.00000001"

    @pytest.mark.parametrize(
        ("members", "threshold", "amount", "err"),
        [
            ([], 1, "1", defs.ErrMissingMembers),
            (["a"], 0, "1", defs.ErrInvalidThreshold),
            (["a", "b"], 3, "1", defs.ErrInvalidThreshold),
            (["a"], 1, "zero", defs.ErrInvalidAmount),
        ],
    )
    def test_invalid(self, members, threshold, amount, err: SafeError) -> None:
        with pytest.raises(SafeError) as exc_info:
            build_recipient(members, threshold, amount)
        assert exc_info.value is err


# ---------------------------------------------------------------------------
# Ghost keys
# ---------------------------------------------------------------------------


class TestGhostKeys:
    def _recipients(self) -> list[Recipient]:
        return [
            Recipient(members=("user-2",), threshold=1, amount="1"),
            Recipient(members=("a", "b"), threshold=2, amount="0.5"),
        ]

    def test_requests_indexed_in_order(self) -> None:
        requests = build_ghost_key_requests(self._recipients(), _hints())
        assert requests == [
            GhostKeyRequest(receivers=("user-2",), index=0, hint="hint-0"),
            GhostKeyRequest(receivers=("a", "b"), index=1, hint="hint-1"),
        ]

    def test_default_hints_unique(self) -> None:
        requests = build_ghost_key_requests(self._recipients())
        assert len({r.hint for r in requests}) == 2

    def test_aligned_keys_accepted(self) -> None:
        requests = build_ghost_key_requests(self._recipients(), _hints())
        check_ghost_keys(requests, [_ghost(0), _ghost(1, n_keys=2)])

    def test_missing_index_accepted(self) -> None:
        requests = build_ghost_key_requests(self._recipients()[:1], _hints())
        check_ghost_keys(requests, [SafeGhostKey(mask="01" * 32, keys=("02" * 32,))])

    def test_length_mismatch(self) -> None:
        requests = build_ghost_key_requests(self._recipients(), _hints())
        with pytest.raises(ConsistencyError, match="expected 2 ghost keys"):
            check_ghost_keys(requests, [_ghost(0)])

    def test_out_of_order(self) -> None:
        requests = build_ghost_key_requests(self._recipients(), _hints())
        with pytest.raises(ConsistencyError, match="carries index"):
            check_ghost_keys(requests, [_ghost(1, n_keys=2), _ghost(0)])

    def test_key_count_mismatch(self) -> None:
        requests = build_ghost_key_requests(self._recipients(), _hints())
        with pytest.raises(ConsistencyError, match="receivers"):
            check_ghost_keys(requests, [_ghost(0), _ghost(1, n_keys=1)])

    async def test_request_ghost_keys(self, engine, fake_sequencer) -> None:
        keys = await engine.transaction_builder.request_ghost_keys(
            self._recipients(), hint_factory=_hints()
        )
        assert [len(k.keys) for k in keys] == [1, 2]
        body = json.loads(fake_sequencer.requests[0].content)
        assert [item["hint"] for item in body] == ["hint-0", "hint-1"]

    async def test_request_ghost_keys_rejects_misaligned(self, engine, fake_sequencer) -> None:
        fake_sequencer.ghost_key_override = [
            {"index": 1, "mask": "01" * 32, "keys": ["02" * 32, "03" * 32]},
            {"index": 0, "mask": "04" * 32, "keys": ["05" * 32]},
        ]
        with pytest.raises(ConsistencyError):
            await engine.transaction_builder.request_ghost_keys(self._recipients())


# ---------------------------------------------------------------------------
# Transaction assembly
# ---------------------------------------------------------------------------


class TestBuildTransaction:
    def _recipients(self) -> list[Recipient]:
        return build_recipients(["user-2"], 1, "1.5", Decimal("0.5"), (USER_ID,), 1)

    def test_layout(self) -> None:
        utxos = _utxos("1.0", "1.0")
        tx = build_transaction(utxos, self._recipients(), [_ghost(0), _ghost(1)], "memo")

        assert not tx.is_signed
        assert tx.asset == utxos[0].asset
        assert [(i.hash, i.index) for i in tx.inputs] == [
            (u.transaction_hash, u.output_index) for u in utxos
        ]
        assert [o.amount for o in tx.outputs] == ["1.5", "0.5"]
        assert [o.script for o in tx.outputs] == ["fffe01", "fffe01"]
        assert tx.outputs[0].keys == _ghost(0).keys
        assert tx.outputs[1].mask == _ghost(1).mask
        assert tx.extra == b"memo"

    def test_deterministic(self) -> None:
        args = (_utxos("1.0", "1.0"), self._recipients(), [_ghost(0), _ghost(1)], "memo")
        assert build_transaction(*args).encode() == build_transaction(*args).encode()

    def test_decoded_amounts_match_recipients(self) -> None:
        tx = build_transaction(_utxos("2"), self._recipients(), [_ghost(0), _ghost(1)])
        decoded = SafeTransaction.decode(tx.encode())
        assert [o.amount for o in decoded.outputs] == [r.amount for r in self._recipients()]

    def test_no_inputs(self) -> None:
        with pytest.raises(SafeError) as exc_info:
            build_transaction([], self._recipients(), [_ghost(0), _ghost(1)])
        assert exc_info.value is defs.ErrNoInputs

    def test_recipient_ghost_key_mismatch(self) -> None:
        with pytest.raises(ConsistencyError):
            build_transaction(_utxos("2"), self._recipients(), [_ghost(0)])

    def test_extra_too_long(self) -> None:
        with pytest.raises(SafeError) as exc_info:
            build_transaction(
                _utxos("2"), self._recipients(), [_ghost(0), _ghost(1)], "x" * 513
            )
        assert exc_info.value is defs.ErrExtraTooLong

    def test_extra_at_limit(self) -> None:
        tx = build_transaction(_utxos("2"), self._recipients(), [_ghost(0), _ghost(1)], b"x" * 512)
        assert len(tx.extra) == 512

    def test_default_limit_matches_config(self) -> None:
        limit = UTXOConfig().max_extra_size
        build_transaction(
            _utxos("2"), self._recipients(), [_ghost(0), _ghost(1)], b"x" * limit
        )
        with pytest.raises(SafeError):
            build_transaction(
                _utxos("2"), self._recipients(), [_ghost(0), _ghost(1)], b"x" * (limit + 1)
            )

    def test_mixed_assets(self) -> None:
        utxos = _utxos("1") + _utxos("1", asset="ee" * 32)
        with pytest.raises(SafeError) as exc_info:
            build_transaction(utxos, self._recipients(), [_ghost(0), _ghost(1)])
        assert exc_info.value is defs.ErrMixedAssets

    async def test_builder_uses_configured_memo_limit(self, engine) -> None:
        engine.config.utxo.max_extra_size = 4
        with pytest.raises(SafeError) as exc_info:
            engine.transaction_builder.build(
                _utxos("2"), self._recipients(), [_ghost(0), _ghost(1)], "hello"
            )
        assert exc_info.value is defs.ErrExtraTooLong
