"""Tests for the safe-wallet-tool command line."""

from __future__ import annotations

import pytest
from fakes import ASSET_ID, USER_ID, FakeSequencer, output_dict

from safe_wallet.engine.client import SafeWalletEngine
from safe_wallet.errors.safe_errors import SafeError
from safe_wallet.tools import safe_tool


@pytest.fixture
def fake(monkeypatch: pytest.MonkeyPatch) -> FakeSequencer:
    """Route the tool's engine to an in-memory sequencer."""
    fake = FakeSequencer([output_dict(1, "1.25"), output_dict(2, "0.75")])
    monkeypatch.setenv("SAFEWALLET_SEQUENCER__USER_ID", USER_ID)
    monkeypatch.setattr(
        safe_tool,
        "SafeWalletEngine",
        lambda config: SafeWalletEngine(config, transport=fake.transport()),
    )
    return fake


def _run(monkeypatch: pytest.MonkeyPatch, *args: str) -> None:
    monkeypatch.setattr("sys.argv", ["safe-wallet-tool", *args])
    safe_tool.main()


class TestSafeTool:
    def test_usage_without_arguments(self, monkeypatch, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            _run(monkeypatch)
        assert exc_info.value.code == 1
        assert "safe-wallet-tool balance" in capsys.readouterr().out

    def test_unknown_command(self, monkeypatch, capsys) -> None:
        with pytest.raises(SystemExit):
            _run(monkeypatch, "burn", "x")
        assert "Unknown command: burn" in capsys.readouterr().out

    def test_balance(self, fake, monkeypatch, capsys) -> None:
        _run(monkeypatch, "balance", ASSET_ID)
        out = capsys.readouterr().out
        assert "Balance:  2" in out
        assert USER_ID in out

    def test_outputs(self, fake, monkeypatch, capsys) -> None:
        _run(monkeypatch, "outputs", ASSET_ID)
        out = capsys.readouterr().out
        assert "output-1" in out
        assert "[2 outputs]" in out

    def test_tx_not_found(self, fake, monkeypatch) -> None:
        with pytest.raises(SafeError, match="transaction not found"):
            _run(monkeypatch, "tx", "missing")
