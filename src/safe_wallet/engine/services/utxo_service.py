"""UTXO service — paginated output scans, balance and coin selection."""

from __future__ import annotations

import contextlib
import dataclasses
import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from safe_wallet.errors.definitions import ErrClientUserIdEmpty
from safe_wallet.errors.utxo_errors import (
    ConsistencyError,
    MaxCountNotEnoughUtxoError,
    NotEnoughOutputsError,
)
from safe_wallet.sequencer.models import OutputState, SafeUtxoOutput
from safe_wallet.utils.amount import format_amount, parse_amount

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from safe_wallet.engine.client import SafeWalletEngine

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class SelectionResult:
    """Outputs picked to fund a spend.

    Attributes:
        outputs: Selected outputs in page order.
        total: Sum of the selected amounts.
        change: ``total`` minus the desired amount (may be zero).
    """

    outputs: tuple[SafeUtxoOutput, ...]
    total: Decimal
    change: Decimal

    def __iter__(self) -> Iterator[object]:
        # Allows ``outputs, change = result``
        return iter((self.outputs, self.change))


def select_from_page(
    page: list[SafeUtxoOutput], needed: Decimal
) -> tuple[Decimal, list[SafeUtxoOutput]]:
    """Take outputs in page order until their sum reaches *needed*.

    Returns:
        Tuple of (sum of taken outputs, taken outputs). The whole page is
        taken when it does not cover *needed*.
    """
    total = Decimal(0)
    taken: list[SafeUtxoOutput] = []
    for output in page:
        if total >= needed:
            break
        total += output.amount_decimal
        taken.append(output)
    return total, taken


class UTXOService:
    """Read-only access to the outputs held by the sequencer.

    - Paginated scans ordered by sequence number
    - Balance aggregation with exact decimals
    - Greedy first-fit coin selection for the client's own outputs

    Outputs are never reserved locally; two concurrent spends may pick the
    same outputs and the sequencer rejects the second one.
    """

    def __init__(self, engine: SafeWalletEngine) -> None:
        self._engine = engine

    # ------------------------------------------------------------------
    # Output Store Access
    # ------------------------------------------------------------------

    async def fetch_outputs(
        self,
        members: list[str],
        threshold: int,
        *,
        asset: str | None = None,
        state: str | None = None,
        offset: int | None = None,
        limit: int | None = None,
    ) -> list[SafeUtxoOutput]:
        """Fetch a single page of outputs starting at sequence *offset*."""
        return await self._engine.sequencer.get_outputs(
            members,
            threshold,
            offset=offset,
            limit=limit or self._engine.config.utxo.balance_page_size,
            state=state,
            asset=asset,
        )

    async def iter_pages(
        self,
        members: list[str],
        threshold: int,
        *,
        asset: str | None = None,
        state: str | None = None,
        limit: int | None = None,
    ) -> AsyncIterator[list[SafeUtxoOutput]]:
        """Yield pages until one comes back shorter than *limit*.

        Each page resumes at the last seen sequence plus one, so pages
        neither skip nor repeat outputs while new outputs keep arriving.

        Raises:
            ConsistencyError: If a full page does not move past the offset.
        """
        page_size = limit or self._engine.config.utxo.balance_page_size
        offset: int | None = None
        while True:
            page = await self.fetch_outputs(
                members,
                threshold,
                asset=asset,
                state=state,
                offset=offset,
                limit=page_size,
            )
            logger.debug("Fetched %d outputs from offset %s", len(page), offset)
            yield page
            if len(page) < page_size:
                return
            next_offset = page[-1].sequence + 1
            if offset is not None and next_offset <= offset:
                msg = f"output pagination stalled at sequence {offset}"
                raise ConsistencyError(msg)
            offset = next_offset

    async def list_outputs(
        self,
        members: list[str],
        threshold: int,
        *,
        asset: str | None = None,
        state: str | None = None,
    ) -> list[SafeUtxoOutput]:
        """Collect every output across all pages."""
        outputs: list[SafeUtxoOutput] = []
        async with contextlib.aclosing(
            self.iter_pages(members, threshold, asset=asset, state=state)
        ) as pages:
            async for page in pages:
                outputs.extend(page)
        return outputs

    # ------------------------------------------------------------------
    # Balance Aggregator
    # ------------------------------------------------------------------

    async def get_balance(self, asset_id: str, members: list[str], threshold: int) -> str:
        """Sum every unspent output of an asset held by a member set.

        Args:
            asset_id: Asset to total.
            members: Member user ids of the holder.
            threshold: Signature threshold of the holder.

        Returns:
            The balance as a decimal string (``"0"`` when nothing is held).
        """
        with self._track_scan("balance"):
            outputs = await self.list_outputs(
                members, threshold, asset=asset_id, state=OutputState.UNSPENT.value
            )
        balance = sum((o.amount_decimal for o in outputs), Decimal(0))
        return format_amount(balance)

    # ------------------------------------------------------------------
    # Coin Selector
    # ------------------------------------------------------------------

    async def select_outputs(
        self,
        asset: str,
        threshold: int,
        desired_amount: str | Decimal,
    ) -> SelectionResult:
        """Select the client's unspent outputs to cover *desired_amount*.

        Pages are scanned in sequence order and outputs accepted greedily
        until the running total reaches the desired amount.

        Args:
            asset: Asset to spend.
            threshold: Threshold of the client's own outputs.
            desired_amount: Amount to cover.

        Returns:
            SelectionResult with the outputs and the change amount.

        Raises:
            SafeError: ``ErrClientUserIdEmpty`` or ``ErrInvalidAmount``.
            NotEnoughOutputsError: If all outputs together fall short.
            MaxCountNotEnoughUtxoError: If the selection hits the input ceiling.
            ConsistencyError: If an output was selected twice.
        """
        user_id = self._engine.user_id
        if not user_id:
            raise ErrClientUserIdEmpty
        desired = parse_amount(desired_amount)
        limits = self._engine.config.utxo

        selected: list[SafeUtxoOutput] = []
        total = Decimal(0)
        with self._track_scan("selection"):
            async with contextlib.aclosing(
                self.iter_pages(
                    [user_id],
                    threshold,
                    asset=asset,
                    state=OutputState.UNSPENT.value,
                    limit=limits.selection_page_size,
                )
            ) as pages:
                async for page in pages:
                    amount, candidates = select_from_page(page, desired - total)
                    total += amount
                    selected.extend(candidates)
                    if total >= desired:
                        break

        if total < desired:
            msg = f"not enough outputs: have {total}, need {desired}"
            raise NotEnoughOutputsError(msg)

        output_ids = {o.output_id for o in selected}
        if len(output_ids) != len(selected):
            msg = "selected outputs are not unique"
            raise ConsistencyError(msg)

        if len(selected) >= limits.max_utxo_count:
            msg = (
                f"{len(selected)} outputs needed, limit is {limits.max_utxo_count - 1}; "
                "consolidate utxos first"
            )
            raise MaxCountNotEnoughUtxoError(msg)

        logger.debug("Selected %d outputs totalling %s for %s", len(selected), total, desired)
        return SelectionResult(outputs=tuple(selected), total=total, change=total - desired)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _track_scan(self, kind: str) -> contextlib.AbstractContextManager[None]:
        metrics = self._engine.metrics
        if metrics is None:
            return contextlib.nullcontext()
        return metrics.track_scan(kind)
