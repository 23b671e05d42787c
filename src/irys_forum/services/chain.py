"""On-chain verification of forum transactions.

This module provides:

- ChainRpcClient, a thin JSON-RPC client over httpx
- ChainVerifier, which decides whether a submitted transaction hash may
  authorize a post, comment or username registration
- an optional on-chain username lookup through ``eth_call``

Every network failure degrades to ``UNAVAILABLE`` so callers can apply the
offline policy instead of hanging or failing the request.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import httpx

from irys_forum.core.errors import ChainVerificationFailed, ReplayDetected
from irys_forum.core.settings import Settings
from irys_forum.core.validation import is_valid_address, is_valid_tx_hash, normalize_tx_hash
from irys_forum.repositories import ForumRepository

logger = logging.getLogger(__name__)

RECEIPT_STATUS_SUCCESS = 1


class ChainError(RuntimeError):
    """Base exception raised for chain RPC failures."""


class ChainUnavailableError(ChainError):
    """Raised when the RPC endpoint cannot be reached or is not configured."""


class VerificationStatus(str, Enum):
    """Outcome of verifying a transaction hash."""

    VERIFIED = "verified"
    INVALID = "invalid"
    ALREADY_USED = "already_used"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class VerificationResult:
    """Verdict plus the chain facts gathered while verifying."""

    status: VerificationStatus
    reason: str = ""
    block_number: int | None = None
    block_timestamp: datetime | None = None
    # First indexed id emitted by the contract event (post or comment id).
    event_id: int | None = None


@dataclass(frozen=True)
class ChainConfig:
    """Immutable configuration for chain access."""

    rpc_url: str | None
    contract_address: str | None
    username_selector: str | None
    timeout_seconds: float

    @property
    def enabled(self) -> bool:
        return bool(self.rpc_url and self.contract_address)


def load_chain_config(settings: Settings) -> ChainConfig:
    """Build configuration object from settings."""

    return ChainConfig(
        rpc_url=settings.chain_rpc_url,
        contract_address=(settings.contract_address or "").lower() or None,
        username_selector=settings.contract_username_selector,
        timeout_seconds=float(settings.chain_timeout_seconds),
    )


def _hex_to_int(value: Any) -> int | None:
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.startswith("0x"):
        try:
            return int(value, 16)
        except ValueError:
            return None
    return None


def decode_abi_string(data: str) -> str | None:
    """Decode a single ABI-encoded ``string`` return value.

    Returns None for empty results or an empty string.
    """
    raw = data[2:] if data.startswith("0x") else data
    try:
        payload = bytes.fromhex(raw)
    except ValueError:
        return None
    if len(payload) < 64:
        return None
    offset = int.from_bytes(payload[:32], "big")
    length = int.from_bytes(payload[offset : offset + 32], "big")
    start = offset + 32
    value = payload[start : start + length].decode("utf-8", errors="replace")
    return value or None


class ChainRpcClient:
    """JSON-RPC client wrapper for an EVM node."""

    def __init__(
        self,
        config: ChainConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()
        self._ids = itertools.count(1)

    @property
    def enabled(self) -> bool:
        return bool(self.config.rpc_url)

    async def _ensure_client(self) -> httpx.AsyncClient:
        if not self.enabled:
            raise ChainUnavailableError("Chain RPC is not configured")

        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    async def close(self) -> None:
        """Release the underlying HTTP connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def call(self, method: str, params: list[Any]) -> Any:
        """Invoke a JSON-RPC method and return its ``result`` member."""

        client = await self._ensure_client()
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            response = await client.post(self.config.rpc_url or "", json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as exc:
            raise ChainUnavailableError(f"Chain RPC request failed: {exc}") from exc
        except ValueError as exc:
            raise ChainError(f"Chain RPC returned invalid JSON: {exc}") from exc

        if not isinstance(body, Mapping):
            raise ChainError("Chain RPC returned an unexpected payload")
        if body.get("error"):
            raise ChainError(f"Chain RPC error for {method}: {body['error']}")
        return body.get("result")

    async def get_transaction_receipt(self, tx_hash: str) -> Mapping[str, Any] | None:
        return await self.call("eth_getTransactionReceipt", [tx_hash])

    async def get_transaction(self, tx_hash: str) -> Mapping[str, Any] | None:
        return await self.call("eth_getTransactionByHash", [tx_hash])

    async def get_block(self, block_number: int) -> Mapping[str, Any] | None:
        return await self.call("eth_getBlockByNumber", [hex(block_number), False])

    async def eth_call(self, to: str, data: str) -> str | None:
        return await self.call("eth_call", [{"to": to, "data": data}, "latest"])


class ChainVerifier:
    """Validates transaction hashes against the forum contract.

    Format checks always run locally. The used-transaction ledger is consulted
    before any network call so a replay is reported even while offline.
    """

    def __init__(self, repository: ForumRepository, client: ChainRpcClient) -> None:
        self.repository = repository
        self.client = client

    @property
    def config(self) -> ChainConfig:
        return self.client.config

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    async def verify(
        self,
        tx_hash: str,
        expected_kind: str,
        expected_sender: str | None = None,
    ) -> VerificationResult:
        """Verify that ``tx_hash`` may authorize an action of ``expected_kind``."""

        if not is_valid_tx_hash(tx_hash):
            return VerificationResult(VerificationStatus.INVALID, "Invalid transaction hash format")
        tx_hash = tx_hash.lower()
        if expected_sender is not None and not is_valid_address(expected_sender):
            return VerificationResult(VerificationStatus.INVALID, "Invalid sender address format")

        if await asyncio.to_thread(self.repository.is_transaction_used, tx_hash):
            return VerificationResult(
                VerificationStatus.ALREADY_USED, "Transaction hash has already been used"
            )

        if not self.enabled:
            return VerificationResult(VerificationStatus.UNAVAILABLE, "Chain verification disabled")

        try:
            return await self._verify_online(tx_hash, expected_kind, expected_sender)
        except ChainUnavailableError as exc:
            logger.warning("Chain unavailable while verifying %s: %s", tx_hash, exc)
            return VerificationResult(VerificationStatus.UNAVAILABLE, str(exc))
        except ChainError as exc:
            logger.warning("Chain error while verifying %s: %s", tx_hash, exc)
            return VerificationResult(VerificationStatus.UNAVAILABLE, str(exc))

    async def _verify_online(
        self, tx_hash: str, expected_kind: str, expected_sender: str | None
    ) -> VerificationResult:
        receipt = await self.client.get_transaction_receipt(tx_hash)
        if not receipt:
            return VerificationResult(VerificationStatus.INVALID, "Transaction not found")
        if _hex_to_int(receipt.get("status")) != RECEIPT_STATUS_SUCCESS:
            return VerificationResult(VerificationStatus.INVALID, "Transaction failed on chain")

        transaction = await self.client.get_transaction(tx_hash) or {}
        sender = str(receipt.get("from") or transaction.get("from") or "").lower()
        if expected_sender is not None and sender != expected_sender.lower():
            return VerificationResult(
                VerificationStatus.INVALID, "Transaction sender does not match author"
            )

        contract = self.config.contract_address or ""
        target = str(receipt.get("to") or transaction.get("to") or "").lower()
        if target != contract:
            return VerificationResult(
                VerificationStatus.INVALID, "Transaction does not target the forum contract"
            )

        contract_logs = [
            log
            for log in receipt.get("logs") or []
            if str(log.get("address", "")).lower() == contract
        ]
        if not contract_logs:
            return VerificationResult(
                VerificationStatus.INVALID, f"No {expected_kind} event emitted by the contract"
            )

        block_number = _hex_to_int(receipt.get("blockNumber"))
        block_timestamp = await self._block_timestamp(block_number)
        topics = contract_logs[0].get("topics") or []
        event_id = _hex_to_int(topics[1]) if len(topics) > 1 else None

        logger.info("Verified %s transaction %s in block %s", expected_kind, tx_hash, block_number)
        return VerificationResult(
            VerificationStatus.VERIFIED,
            block_number=block_number,
            block_timestamp=block_timestamp,
            event_id=event_id,
        )

    async def _block_timestamp(self, block_number: int | None) -> datetime | None:
        if block_number is None:
            return None
        try:
            block = await self.client.get_block(block_number)
        except ChainError as exc:
            logger.debug("Could not fetch block %s: %s", block_number, exc)
            return None
        timestamp = _hex_to_int((block or {}).get("timestamp"))
        if timestamp is None:
            return None
        return datetime.fromtimestamp(timestamp, UTC)

    async def authorize(
        self,
        tx_hash: str,
        kind: str,
        sender: str,
        content_id: str | None,
    ) -> VerificationResult:
        """Verify ``tx_hash`` and claim it for ``content_id``.

        Unavailable verification follows the offline policy: the hash is
        still claimed so it cannot be reused once the chain comes back. The
        claim is committed on its own and survives a later persistence
        failure.

        Raises:
            InvalidInput: If the hash is malformed.
            ChainVerificationFailed: If the chain rejects the transaction.
            ReplayDetected: If the hash was already claimed.
        """
        tx_hash = normalize_tx_hash(tx_hash)
        result = await self.verify(tx_hash, kind, sender)
        if result.status is VerificationStatus.INVALID:
            raise ChainVerificationFailed(result.reason)
        if result.status is VerificationStatus.ALREADY_USED:
            raise ReplayDetected(result.reason)
        if result.status is VerificationStatus.UNAVAILABLE:
            logger.warning(
                "Accepting %s transaction %s without chain verification (%s)",
                kind,
                tx_hash,
                result.reason,
            )
        await asyncio.to_thread(
            self.repository.claim_transaction,
            tx_hash,
            kind,
            sender,
            content_id,
            result.block_number,
        )
        return result

    async def username_on_chain(self, address: str) -> str | None:
        """Return the username the contract holds for ``address``, if any.

        Returns None when the lookup is not configured or the chain cannot be
        reached.
        """
        selector = self.config.username_selector
        if not (self.enabled and selector and is_valid_address(address)):
            return None
        data = selector.lower().removeprefix("0x") + address.lower()[2:].rjust(64, "0")
        try:
            result = await self.client.eth_call(self.config.contract_address or "", "0x" + data)
        except ChainError as exc:
            logger.warning("On-chain username lookup failed for %s: %s", address, exc)
            return None
        if not result or result == "0x":
            return None
        return decode_abi_string(result)


__all__ = [
    "ChainConfig",
    "ChainError",
    "ChainRpcClient",
    "ChainUnavailableError",
    "ChainVerifier",
    "VerificationResult",
    "VerificationStatus",
    "decode_abi_string",
    "load_chain_config",
]
