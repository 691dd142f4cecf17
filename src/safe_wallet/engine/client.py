"""SafeWalletEngine — central engine client owning all services."""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

from safe_wallet.engine.transaction.builder import build_recipient, build_recipients
from safe_wallet.engine.transaction.flow import BuiltTransaction
from safe_wallet.errors.safe_errors import SafeError
from safe_wallet.errors.sequencer_errors import SequencerError
from safe_wallet.safe.signer import parse_spend_key

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    import httpx

    from safe_wallet.config.settings import AppConfig
    from safe_wallet.engine.services.utxo_service import UTXOService
    from safe_wallet.engine.transaction.builder import TransactionBuilder
    from safe_wallet.metrics.collector import EngineMetrics
    from safe_wallet.safe.signer import TransactionSigner
    from safe_wallet.sequencer.models import TransactionResponse
    from safe_wallet.sequencer.service import SequencerClient

logger = logging.getLogger(__name__)

# Error messages
_ERR_NOT_INITIALIZED = "Engine not initialized. Call initialize() first."


class SafeWalletEngine:
    """Central engine that owns the sequencer client and services.

    Provides lifecycle management, service registry and the end-to-end
    transfer: select → build → verify → sign → send.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        signer: TransactionSigner | None = None,
        auth: httpx.Auth | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize engine with configuration.

        Args:
            config: Application configuration.
            signer: Transaction signer (defaults to ``Ed25519Signer``).
            auth: Optional request signer for the established session.
            transport: Optional HTTP transport override.
        """
        self._config = config
        self._signer = signer
        self._auth = auth
        self._transport = transport
        self._initialized = False

        self._sequencer: SequencerClient | None = None
        self._utxo_service: UTXOService | None = None
        self._transaction_builder: TransactionBuilder | None = None
        self._metrics: EngineMetrics | None = None

    async def initialize(self) -> None:
        """Connect the sequencer client and start services.

        Raises:
            RuntimeError: If already initialized.
        """
        if self._initialized:
            msg = "Engine already initialized"
            raise RuntimeError(msg)

        from safe_wallet.engine.services.utxo_service import UTXOService
        from safe_wallet.engine.transaction.builder import TransactionBuilder
        from safe_wallet.sequencer.service import SequencerClient

        self._sequencer = SequencerClient(
            self._config.sequencer, auth=self._auth, transport=self._transport
        )
        await self._sequencer.connect()

        self._utxo_service = UTXOService(self)
        self._transaction_builder = TransactionBuilder(self)

        if self._signer is None:
            from safe_wallet.safe.signer import Ed25519Signer

            self._signer = Ed25519Signer()

        if self._config.metrics.enabled:
            from safe_wallet.metrics.collector import EngineMetrics

            self._metrics = EngineMetrics()

        self._initialized = True
        logger.info("Safe wallet engine initialized for %s", self._config.sequencer.url)

    async def close(self) -> None:
        """Shut down services and the HTTP client.

        Can be called multiple times (idempotent).
        """
        if not self._initialized:
            return

        self._metrics = None
        self._utxo_service = None
        self._transaction_builder = None

        if self._sequencer is not None:
            await self._sequencer.close()
            self._sequencer = None

        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        """Check if the engine is initialized."""
        return self._initialized

    @property
    def config(self) -> AppConfig:
        """Get the application configuration."""
        return self._config

    @property
    def user_id(self) -> str:
        """User id of the session owner; the only member whose outputs are spent."""
        return self._config.sequencer.user_id

    @property
    def sequencer(self) -> SequencerClient:
        """Get the sequencer client."""
        if self._sequencer is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._sequencer

    @property
    def utxo_service(self) -> UTXOService:
        """Get the UTXO service."""
        if self._utxo_service is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._utxo_service

    @property
    def transaction_builder(self) -> TransactionBuilder:
        """Get the transaction builder."""
        if self._transaction_builder is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._transaction_builder

    @property
    def signer(self) -> TransactionSigner:
        """Get the transaction signer."""
        if self._signer is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._signer

    @property
    def metrics(self) -> EngineMetrics | None:
        """Get the engine metrics (None if disabled or not initialized)."""
        return self._metrics

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_balance(
        self,
        asset_id: str,
        members: Sequence[str] | None = None,
        threshold: int = 1,
    ) -> str:
        """Balance of an asset for a member set (the client user by default)."""
        return await self.utxo_service.get_balance(
            asset_id, list(members) if members else [self.user_id], threshold
        )

    async def get_transaction(self, request_id: str) -> TransactionResponse:
        """Look up a sent transaction by its request id."""
        return await self.sequencer.get_transaction_by_id(request_id)

    async def transfer(
        self,
        members: Sequence[str],
        threshold: int,
        amount: str,
        asset: str,
        spend_key: str,
        *,
        memo: str | None = None,
        input_threshold: int = 1,
        request_id: str | None = None,
        hint_factory: Callable[[], str] | None = None,
    ) -> list[TransactionResponse]:
        """Send *amount* of *asset* to a user or multi-signature group.

        Args:
            members: Destination member ids.
            threshold: Destination threshold.
            amount: Decimal amount string.
            asset: Asset id.
            spend_key: Spend key seed (hex) of the client user.
            memo: Optional memo stored in the transaction extra.
            input_threshold: Threshold of the client's own outputs.
            request_id: Idempotency key; minted when not given. Reuse it only
                to retry the exact same transfer.
            hint_factory: Ghost key hint source (uuid4 by default).

        Returns:
            Transaction records accepted by the sequencer.

        Raises:
            SafeError: Validation, selection, consistency and sequencer errors.
        """
        build_recipient(members, threshold, amount)
        parse_spend_key(spend_key)
        try:
            sent = await self._transfer(
                members,
                threshold,
                amount,
                asset,
                spend_key,
                memo=memo,
                input_threshold=input_threshold,
                request_id=request_id,
                hint_factory=hint_factory,
            )
        except SequencerError as exc:
            self._record_transfer("failed" if exc.retryable else "rejected")
            raise
        except SafeError:
            self._record_transfer("failed")
            raise
        self._record_transfer("sent")
        return sent

    async def transaction_to_user(
        self,
        user_id: str,
        amount: str,
        asset: str,
        spend_key: str,
        *,
        threshold: int = 1,
        memo: str | None = None,
        request_id: str | None = None,
    ) -> list[TransactionResponse]:
        """Send *amount* of *asset* to a single user."""
        return await self.transfer(
            [user_id],
            1,
            amount,
            asset,
            spend_key,
            memo=memo,
            input_threshold=threshold,
            request_id=request_id,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _transfer(
        self,
        members: Sequence[str],
        threshold: int,
        amount: str,
        asset: str,
        spend_key: str,
        *,
        memo: str | None,
        input_threshold: int,
        request_id: str | None,
        hint_factory: Callable[[], str] | None,
    ) -> list[TransactionResponse]:
        selection = await self.utxo_service.select_outputs(asset, input_threshold, amount)
        first = selection.outputs[0]
        recipients = build_recipients(
            members,
            threshold,
            amount,
            selection.change,
            first.receivers,
            first.receivers_threshold,
        )

        builder = self.transaction_builder
        if hint_factory is None:
            ghost_keys = await builder.request_ghost_keys(recipients)
        else:
            ghost_keys = await builder.request_ghost_keys(recipients, hint_factory=hint_factory)
        tx = builder.build(selection.outputs, recipients, ghost_keys, memo or "")
        built = BuiltTransaction.create(tx, selection.outputs, request_id=request_id)

        with self._track_step("verify"):
            verified = await built.verify(self.sequencer)
        with self._track_step("sign"):
            signed = verified.sign(self.signer, spend_key)
        with self._track_step("send"):
            sent = await signed.send(self.sequencer)
        return list(sent.records)

    def _track_step(self, step: str) -> contextlib.AbstractContextManager[None]:
        if self._metrics is None:
            return contextlib.nullcontext()
        return self._metrics.track_step(step)

    def _record_transfer(self, outcome: str) -> None:
        if self._metrics is not None:
            self._metrics.record_transfer(outcome)
