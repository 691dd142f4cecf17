"""Sequencer HTTP client — outputs, ghost keys, verify, send.

Provides an async HTTP client for the sequencer's safe API:
- GET  /safe/outputs — Page of outputs owned by a member set
- POST /safe/deposit/entries — Deposit address for a chain
- POST /safe/users — Register a spend public key
- POST /safe/keys — One-time ghost keys for recipients
- POST /safe/transaction/requests — Verify a transaction, get view keys
- POST /safe/transactions — Broadcast signed transactions
- GET  /safe/transactions/{id} — Look up a transaction by request id

Responses arrive in a ``{"data": ...}`` envelope; failures carry an
``{"error": {...}}`` body and surface as ``SequencerError``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from safe_wallet.errors.definitions import ErrTransactionNotFound
from safe_wallet.errors.sequencer_errors import (
    MalformedPayloadError,
    SequencerError,
    SequencerUnavailableError,
)
from safe_wallet.sequencer.models import (
    Account,
    DepositEntry,
    GhostKeyRequest,
    SafeGhostKey,
    SafeUtxoOutput,
    TransactionRequest,
    TransactionResponse,
)
from safe_wallet.utils.crypto import hash_members

if TYPE_CHECKING:
    from safe_wallet.config.settings import SequencerConfig

logger = logging.getLogger(__name__)

# Largest page the outputs endpoint serves
DEFAULT_OUTPUTS_LIMIT = 500


class SequencerClient:
    """Async HTTP client for the sequencer safe API.

    Usage::

        client = SequencerClient(config)
        await client.connect()
        try:
            page = await client.get_outputs([user_id], 1, state="unspent")
        finally:
            await client.close()
    """

    def __init__(
        self,
        config: SequencerConfig,
        *,
        auth: httpx.Auth | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the sequencer client.

        Args:
            config: Sequencer configuration (url, token, timeout).
            auth: Optional request signer for an established session.
            transport: Optional transport override (tests use MockTransport).
        """
        self._config = config
        self._auth = auth
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the underlying HTTP client."""
        if self._client is not None:
            return
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._config.token:
            headers["Authorization"] = f"Bearer {self._config.token}"

        self._client = httpx.AsyncClient(
            base_url=self._config.url.rstrip("/"),
            headers=headers,
            timeout=self._config.timeout,
            auth=self._auth,
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        """Check if the HTTP client is active."""
        return self._client is not None

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    async def get_outputs(
        self,
        members: list[str],
        threshold: int,
        *,
        offset: int | None = None,
        limit: int = DEFAULT_OUTPUTS_LIMIT,
        state: str | None = None,
        asset: str | None = None,
    ) -> list[SafeUtxoOutput]:
        """Fetch one page of outputs owned by a member set.

        Args:
            members: Member user ids (hashed before sending).
            threshold: Signature threshold of the member set.
            offset: Smallest sequence number to return.
            limit: Page size.
            state: Optional state filter (e.g. ``unspent``).
            asset: Optional asset id filter.

        Returns:
            Outputs ordered by ascending sequence.

        Raises:
            SequencerError: On HTTP or API errors.
        """
        params: dict[str, Any] = {
            "members": hash_members(members),
            "threshold": threshold,
            "limit": limit,
        }
        if offset is not None:
            params["offset"] = offset
        if state is not None:
            params["state"] = state
        if asset is not None:
            params["asset"] = asset

        data = await self._request("GET", "/safe/outputs", params=params)
        return [SafeUtxoOutput.from_dict(item) for item in _as_list(data, "outputs")]

    # ------------------------------------------------------------------
    # Accounts and deposits
    # ------------------------------------------------------------------

    async def create_deposit(
        self,
        chain_id: str,
        *,
        members: list[str] | None = None,
        threshold: int | None = None,
    ) -> list[DepositEntry]:
        """Get the deposit address of a user or group on a chain.

        Repeated calls return the same address.
        """
        body: dict[str, Any] = {"chain_id": chain_id}
        if members is not None:
            body["members"] = members
        if threshold is not None:
            body["threshold"] = threshold

        data = await self._request("POST", "/safe/deposit/entries", json=body)
        return [DepositEntry.from_dict(item) for item in _as_list(data, "deposit entries")]

    async def register_public_key(
        self,
        *,
        public_key: str,
        signature: str,
        pin: str,
        salt: str,
    ) -> Account:
        """Register the Ed25519 spend public key of the session user.

        Args:
            public_key: Ed25519 public key hex.
            signature: Ed25519 signature of the user id, hex.
            pin: Encrypted PIN, base64.
            salt: Encrypted salt, base64.
        """
        body = {
            "public_key": public_key,
            "signature": signature,
            "pin_base64": pin,
            "salt_base64": salt,
        }
        data = await self._request("POST", "/safe/users", json=body)
        return Account.from_dict(data)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def ghost_keys(self, requests: list[GhostKeyRequest]) -> list[SafeGhostKey]:
        """Fetch one-time keys for a batch of recipients, in request order."""
        data = await self._request("POST", "/safe/keys", json=[r.to_dict() for r in requests])
        return [SafeGhostKey.from_dict(item) for item in _as_list(data, "ghost keys")]

    async def transaction_request(
        self, requests: list[TransactionRequest]
    ) -> list[TransactionResponse]:
        """Verify unsigned transactions; responses carry per-input views."""
        data = await self._request(
            "POST", "/safe/transaction/requests", json=[r.to_dict() for r in requests]
        )
        return [TransactionResponse.from_dict(item) for item in _as_list(data, "transactions")]

    async def transactions(self, requests: list[TransactionRequest]) -> list[TransactionResponse]:
        """Broadcast signed transactions."""
        data = await self._request(
            "POST", "/safe/transactions", json=[r.to_dict() for r in requests]
        )
        return [TransactionResponse.from_dict(item) for item in _as_list(data, "transactions")]

    async def get_transaction_by_id(self, request_id: str) -> TransactionResponse:
        """Look up a transaction by the request id it was sent with.

        Raises:
            SafeError: ``ErrTransactionNotFound`` if the sequencer has no record.
        """
        try:
            data = await self._request("GET", f"/safe/transactions/{request_id}")
        except SequencerError as exc:
            if exc.status_code == 404:
                raise ErrTransactionNotFound from exc
            raise
        return TransactionResponse.from_dict(data)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_connected(self) -> httpx.AsyncClient:
        """Return the HTTP client, raising if not connected."""
        if self._client is None:
            msg = "Sequencer client not connected. Call connect() first."
            raise SequencerError(msg, status_code=500)
        return self._client

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and unwrap the ``data`` envelope."""
        client = self._ensure_connected()
        logger.debug("sequencer %s %s", method, path)
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            msg = f"Sequencer {method} {path} failed: {exc}"
            raise SequencerUnavailableError(msg) from exc

        try:
            body = response.json()
        except ValueError:
            body = None

        error = body.get("error") if isinstance(body, dict) else None
        if error or not response.is_success:
            self._raise_for_error(response, error, path)

        if not isinstance(body, dict) or "data" not in body:
            msg = f"Sequencer {path}: response has no data envelope"
            raise MalformedPayloadError(msg)
        return body["data"]

    def _raise_for_error(
        self, response: httpx.Response, error: dict[str, Any] | None, path: str
    ) -> None:
        """Raise a SequencerError from an error body or non-2xx response."""
        if isinstance(error, dict):
            status = _as_int(error.get("status"), response.status_code)
            code = _as_int(error.get("code"), 0)
            detail = error.get("description") or response.text
        else:
            status = response.status_code
            code = 0
            detail = response.text

        logger.warning("Sequencer rejected %s (%s/%s): %s", path, status, code, detail)
        if status in (500, 502, 503, 504):
            msg = f"Sequencer {path} unavailable ({status}): {detail}"
            raise SequencerUnavailableError(msg, status_code=status)
        msg = f"Sequencer {path} failed ({status}): {detail}"
        raise SequencerError(msg, status_code=status, error_code=code)


def _as_list(data: Any, kind: str) -> list[Any]:
    """Ensure a ``data`` payload is a list."""
    if not isinstance(data, list):
        msg = f"{kind}: expected a list, got {type(data).__name__}"
        raise MalformedPayloadError(msg)
    return data


def _as_int(value: Any, default: int) -> int:
    """Numeric field of an error body; *default* when absent or not a number."""
    try:
        return int(value) if value else default
    except (TypeError, ValueError):
        return default
