"""
Ledger connection over a persistent WebSocket RPC.

Exposes the handful of RPC capabilities the relayer needs (log
subscriptions, chain ID, account nonce, gas price, raw submission and
receipt waiting), translating provider failures into relayer errors.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

from hexbytes import HexBytes
from web3 import AsyncWeb3, Web3
from web3.providers import WebSocketProvider

from .errors import LedgerConnectionError, SubmissionError
from .models import InclusionResult

logger = logging.getLogger(__name__)


class LogSubscription:
    """
    A live eth_subscribe("logs") stream.

    Iterating yields raw log records until the connection fails, at which
    point the iterator raises LedgerConnectionError. The same object is the
    handle used to unsubscribe.
    """

    def __init__(self, w3: AsyncWeb3, subscription_id: str, label: str) -> None:
        self.w3 = w3
        self.subscription_id = subscription_id
        self.label = label
        self.active = True

    async def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        try:
            async for payload in self.w3.socket.process_subscriptions():
                if payload.get("subscription") != self.subscription_id:
                    continue
                yield payload["result"]
        except Exception as e:
            self.active = False
            raise LedgerConnectionError(f"Subscription {self.label} failed: {e}") from e
        # process_subscriptions only returns when the socket is closed
        self.active = False
        raise LedgerConnectionError(f"Subscription {self.label} stream ended")

    async def unsubscribe(self) -> None:
        """Tear down the subscription, ignoring a connection that is already gone."""
        if not self.active:
            return
        self.active = False
        try:
            await self.w3.eth.unsubscribe(self.subscription_id)
        except Exception as e:
            logger.warning(f"Error unsubscribing {self.label}: {e}")


class LedgerConnection:
    """Async RPC connection to a single ledger."""

    def __init__(
        self,
        name: str,
        rpc_url: str,
        request_timeout: float = 60,
        receipt_timeout: float = 120,
    ) -> None:
        """
        Initialize the LedgerConnection.

        Args:
            name: Label used in logs ("A" or "B")
            rpc_url: WebSocket RPC endpoint URL
            request_timeout: Timeout for individual RPC requests in seconds
            receipt_timeout: Timeout when waiting for a transaction receipt in seconds
        """
        self.name = name
        self.rpc_url = rpc_url
        self.receipt_timeout = receipt_timeout
        self.w3 = AsyncWeb3(
            WebSocketProvider(
                rpc_url,
                request_timeout=request_timeout,
                subscription_response_queue_size=10000,
            )
        )

    async def connect(self) -> None:
        """Open the WebSocket if it is not already open."""
        try:
            if await self.w3.provider.is_connected():
                return
            await self.w3.provider.connect()
        except Exception as e:
            raise LedgerConnectionError(f"Cannot connect to chain {self.name} at {self.rpc_url}: {e}") from e
        logger.info(f"Connected to chain {self.name} at {self.rpc_url}")

    async def disconnect(self) -> None:
        try:
            await self.w3.provider.disconnect()
        except Exception as e:
            logger.warning(f"Error disconnecting from chain {self.name}: {e}")

    async def subscribe_filtered_logs(self, address: str, topics: list[Any]) -> LogSubscription:
        """
        Subscribe to logs emitted by ``address`` matching ``topics``.

        Reconnects the socket first if a previous stream broke it.

        Raises:
            LedgerConnectionError: If the filter cannot be established
        """
        await self.connect()
        log_filter = {
            "address": Web3.to_checksum_address(address),
            "topics": [HexBytes(t).to_0x_hex() if isinstance(t, (bytes, bytearray)) else t for t in topics],
        }
        try:
            subscription_id = await self.w3.eth.subscribe("logs", log_filter)
        except Exception as e:
            raise LedgerConnectionError(f"Cannot subscribe to logs on chain {self.name}: {e}") from e
        label = f"{self.name}:{address[:10]}"
        logger.info(f"Subscribed to logs on chain {self.name} ({subscription_id})")
        return LogSubscription(self.w3, subscription_id, label)

    async def network_identifier(self) -> int:
        try:
            return await self.w3.eth.chain_id
        except Exception as e:
            raise LedgerConnectionError(f"Cannot read chain ID of chain {self.name}: {e}") from e

    async def next_transaction_ordinal(self, account: str) -> int:
        """Return the next usable account nonce, counting pending transactions."""
        try:
            return await self.w3.eth.get_transaction_count(account, "pending")
        except Exception as e:
            raise LedgerConnectionError(f"Cannot read nonce on chain {self.name}: {e}") from e

    async def suggested_fee(self) -> int:
        try:
            return await self.w3.eth.gas_price
        except Exception as e:
            raise LedgerConnectionError(f"Cannot read gas price on chain {self.name}: {e}") from e

    async def submit(self, raw_transaction: bytes) -> str:
        """Broadcast a signed transaction and return its hash."""
        try:
            tx_hash = await self.w3.eth.send_raw_transaction(raw_transaction)
        except Exception as e:
            raise SubmissionError(f"Cannot send transaction on chain {self.name}: {e}") from e
        return HexBytes(tx_hash).to_0x_hex()

    async def wait_for_inclusion(self, tx_hash: str) -> InclusionResult:
        """
        Block until the transaction has a receipt.

        Raises:
            SubmissionError: If the wait times out or the connection drops
        """
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                HexBytes(tx_hash), timeout=self.receipt_timeout
            )
        except Exception as e:
            raise SubmissionError(f"Waiting for {tx_hash} on chain {self.name} failed: {e}") from e

        return InclusionResult(
            success=receipt.get("status", 0) == 1,
            block_number=receipt["blockNumber"],
            gas_used=receipt["gasUsed"],
        )
