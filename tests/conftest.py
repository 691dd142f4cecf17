"""Shared test fixtures for safe-wallet test suite."""

from __future__ import annotations

import pytest
from fakes import BASE_URL, USER_ID, FakeSequencer

from safe_wallet.config.settings import AppConfig, MetricsConfig, SequencerConfig


@pytest.fixture
def app_config() -> AppConfig:
    """Provide a test AppConfig pointing at the fake sequencer."""
    return AppConfig(
        debug=True,
        sequencer=SequencerConfig(url=BASE_URL, token="test-token", user_id=USER_ID),
        metrics=MetricsConfig(enabled=True),
    )


@pytest.fixture
def fake_sequencer() -> FakeSequencer:
    return FakeSequencer()


@pytest.fixture
async def engine(app_config, fake_sequencer):
    """Initialized engine whose HTTP traffic goes to ``fake_sequencer``."""
    from safe_wallet.engine.client import SafeWalletEngine

    eng = SafeWalletEngine(app_config, transport=fake_sequencer.transport())
    await eng.initialize()
    yield eng
    await eng.close()
