#!/usr/bin/env python3
"""Safe Wallet Tool — check balances, list outputs, look up transactions.

A standalone CLI utility for inspecting a session user's safe assets.
Connection settings come from ``SAFEWALLET_*`` environment variables
(``SAFEWALLET_SEQUENCER__TOKEN``, ``SAFEWALLET_SEQUENCER__USER_ID``, ...):

    # Balance of an asset (own outputs, or a group: members comma separated)
    safe-wallet-tool balance <asset_id> [members] [threshold]

    # List unspent outputs of an asset
    safe-wallet-tool outputs <asset_id>

    # Deposit address on a chain
    safe-wallet-tool deposit <chain_id>

    # Look up a transaction by request id
    safe-wallet-tool tx <request_id>
"""

from __future__ import annotations

import asyncio
import sys
from decimal import Decimal
from typing import TYPE_CHECKING

from safe_wallet.config.settings import AppConfig
from safe_wallet.engine.client import SafeWalletEngine
from safe_wallet.sequencer.models import OutputState
from safe_wallet.utils.amount import format_amount

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


def _run(action: Callable[[SafeWalletEngine], Awaitable[None]]) -> None:
    async def _main() -> None:
        engine = SafeWalletEngine(AppConfig())
        await engine.initialize()
        try:
            await action(engine)
        finally:
            await engine.close()

    asyncio.run(_main())


def _cmd_balance(asset_id: str, members: list[str] | None, threshold: int) -> None:
    """Print the balance of an asset."""

    async def _action(engine: SafeWalletEngine) -> None:
        balance = await engine.get_balance(asset_id, members, threshold)
        holder = ",".join(members) if members else engine.user_id
        print(f"Holder:   {holder} ({threshold})")
        print(f"Asset:    {asset_id}")
        print(f"Balance:  {balance}")

    _run(_action)


def _cmd_outputs(asset_id: str) -> None:
    """List unspent outputs of an asset held by the client user."""

    async def _action(engine: SafeWalletEngine) -> None:
        outputs = await engine.utxo_service.list_outputs(
            [engine.user_id], 1, asset=asset_id, state=OutputState.UNSPENT.value
        )
        if not outputs:
            print(f"No unspent outputs for {asset_id}")
            return
        print(f"Unspent outputs for {asset_id}:")
        print("-" * 80)
        for o in outputs:
            print(f"  #{o.sequence:<10} {o.output_id}  {o.amount:>20}")
        print("-" * 80)
        total = sum((o.amount_decimal for o in outputs), Decimal(0))
        print(f"  Total: {format_amount(total)}  [{len(outputs)} outputs]")

    _run(_action)


def _cmd_deposit(chain_id: str) -> None:
    """Print the deposit address of the client user on a chain."""

    async def _action(engine: SafeWalletEngine) -> None:
        entries = await engine.sequencer.create_deposit(chain_id)
        for entry in entries:
            tag = f"  tag={entry.tag}" if entry.tag else ""
            print(f"  {entry.destination}{tag}")

    _run(_action)


def _cmd_tx(request_id: str) -> None:
    """Print a transaction record."""

    async def _action(engine: SafeWalletEngine) -> None:
        tx = await engine.get_transaction(request_id)
        print(f"Request:  {tx.request_id}")
        print(f"Hash:     {tx.transaction_hash}")
        print(f"State:    {tx.state}")
        print(f"Amount:   {tx.amount}")

    _run(_action)


def main() -> None:
    """CLI entry point."""
    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(1)

    cmd = sys.argv[1].lower()
    arg = sys.argv[2]

    if cmd == "balance":
        members = sys.argv[3].split(",") if len(sys.argv) > 3 else None
        threshold = int(sys.argv[4]) if len(sys.argv) > 4 else 1
        _cmd_balance(arg, members, threshold)
    elif cmd == "outputs":
        _cmd_outputs(arg)
    elif cmd == "deposit":
        _cmd_deposit(arg)
    elif cmd == "tx":
        _cmd_tx(arg)
    else:
        print(f"Unknown command: {cmd}")
        print(__doc__)
        sys.exit(1)


if __name__ == "__main__":
    main()
