#!/usr/bin/env python3
"""Mirrored transaction submission for the bridge relayer.

This module turns a decoded DepositEvent into a confirmed
receiveFromOtherChain transaction on the destination chain. A nonce is
marked as relayed only after the receipt reports success; every failure is
terminal for that event and is not retried.
"""

import logging
from typing import TYPE_CHECKING, Any

from eth_account.signers.local import LocalAccount
from web3 import Web3

from .dedup import DeduplicationTracker
from .errors import LedgerConnectionError, SubmissionError, ValidationError
from .models import DepositEvent, RelayResult, RelayState
from .utils.contract_utility import RECEIVE_FUNCTION

if TYPE_CHECKING:
    from .ledger import LedgerConnection
    from .utils.contract_utility import BridgeContract

logger = logging.getLogger(__name__)


class TransactionRelayer:
    """Builds, signs, submits and confirms mirrored transactions."""

    def __init__(
        self,
        connection: "LedgerConnection",
        contract: "BridgeContract",
        account: LocalAccount,
        destination_address: str,
        destination_chain_id: int,
        tracker: DeduplicationTracker,
        gas_limit: int = 300_000,
    ) -> None:
        """
        Initialize the TransactionRelayer.

        Args:
            connection: Destination chain connection
            contract: Encoder for the Bridge contract interface
            account: Signing identity of the relayer
            destination_address: Bridge contract on the destination chain
            destination_chain_id: Chain ID of the destination chain
            tracker: Deduplication tracker owned by this direction
            gas_limit: Fixed gas budget for every mirrored transaction
        """
        self.connection = connection
        self.contract = contract
        self.account = account
        self.destination_address = Web3.to_checksum_address(destination_address)
        self.destination_chain_id = destination_chain_id
        self.tracker = tracker
        self.gas_limit = gas_limit

    def validate(self, event: DepositEvent) -> None:
        """
        Check that this direction is responsible for the event.

        Raises:
            ValidationError: If the event targets another chain or its nonce
                has already been relayed
        """
        if event.destination_chain_id != self.destination_chain_id:
            raise ValidationError(
                f"Skipping deposit nonce={event.nonce} intended for chain "
                f"{event.destination_chain_id}"
            )
        if self.tracker.is_processed(event.nonce):
            raise ValidationError(f"Nonce {event.nonce} already processed")

    def encode(self, event: DepositEvent) -> bytes:
        """Encode the receiveFromOtherChain call for an event."""
        return self.contract.encode_call(
            RECEIVE_FUNCTION, event.recipient, event.amount, event.nonce
        )

    def build_transaction(self, call_data: bytes, ordinal: int, gas_price: int) -> dict[str, Any]:
        """Build the unsigned legacy transaction around an encoded call."""
        return {
            "to": self.destination_address,
            "value": 0,
            "gas": self.gas_limit,
            "gasPrice": gas_price,
            "nonce": ordinal,
            "data": call_data,
            "chainId": self.destination_chain_id,
        }

    async def relay(self, event: DepositEvent) -> RelayResult:
        """
        Relay one deposit to the destination chain.

        Args:
            event: The decoded deposit

        Returns:
            RelayResult in state CONFIRMED, SKIPPED or FAILED
        """
        try:
            self.validate(event)
        except ValidationError as e:
            logger.info(str(e))
            return RelayResult(state=RelayState.SKIPPED, nonce=event.nonce, error=str(e))

        logger.info(
            f"Deposit: from={event.sender} to={event.recipient} "
            f"amount={event.amount} nonce={event.nonce}"
        )

        try:
            call_data = self.encode(event)
        except SubmissionError as e:
            return self._failed(event, "Pack", e)

        try:
            ordinal = await self.connection.next_transaction_ordinal(self.account.address)
            gas_price = await self.connection.suggested_fee()
        except LedgerConnectionError as e:
            return self._failed(event, "Prepare", e)

        try:
            tx = self.build_transaction(call_data, ordinal, gas_price)
            signed_tx = self.account.sign_transaction(tx)
        except (TypeError, ValueError) as e:
            return self._failed(event, "Sign", e)

        try:
            tx_hash = await self.connection.submit(signed_tx.raw_transaction)
        except SubmissionError as e:
            return self._failed(event, "Send", e)

        logger.info(f"Transaction sent: {tx_hash}")

        try:
            inclusion = await self.connection.wait_for_inclusion(tx_hash)
        except SubmissionError as e:
            return self._failed(event, "Wait mined", e, tx_hash=tx_hash)

        if not inclusion.success:
            logger.error(f"✗ Transaction failed: {tx_hash} (nonce={event.nonce})")
            return RelayResult(
                state=RelayState.FAILED,
                nonce=event.nonce,
                tx_hash=tx_hash,
                block_number=inclusion.block_number,
                gas_used=inclusion.gas_used,
                error="Transaction reverted",
            )

        self.tracker.mark_processed(event.nonce)

        logger.info(
            f"✓ Transaction confirmed: block={inclusion.block_number} "
            f"gasUsed={inclusion.gas_used} nonce={event.nonce}"
        )
        return RelayResult(
            state=RelayState.CONFIRMED,
            nonce=event.nonce,
            tx_hash=tx_hash,
            block_number=inclusion.block_number,
            gas_used=inclusion.gas_used,
        )

    def _failed(
        self, event: DepositEvent, step: str, error: Exception, tx_hash: str | None = None
    ) -> RelayResult:
        logger.error(f"{step} failed for nonce={event.nonce}: {error}")
        return RelayResult(
            state=RelayState.FAILED, nonce=event.nonce, tx_hash=tx_hash, error=str(error)
        )
