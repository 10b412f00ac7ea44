#!/usr/bin/env python3
"""Unit tests for the TransactionRelayer state machine."""

import pytest
import rlp
from eth_abi import decode
from eth_account import Account
from web3 import Web3

from bridge_relayer.dedup import DeduplicationTracker
from bridge_relayer.models import DepositEvent, RelayState
from bridge_relayer.transaction_relayer import TransactionRelayer

from conftest import DEST_BRIDGE, RECIPIENT, SENDER


@pytest.fixture
def tracker():
    return DeduplicationTracker()


@pytest.fixture
def relayer(destination, contract, account, tracker):
    """TransactionRelayer targeting a destination with chain ID 7."""
    return TransactionRelayer(
        connection=destination,
        contract=contract,
        account=account,
        destination_address=DEST_BRIDGE,
        destination_chain_id=7,
        tracker=tracker,
    )


@pytest.fixture
def deposit():
    return DepositEvent(
        sender=SENDER,
        destination_chain_id=7,
        recipient=RECIPIENT,
        amount=1000,
        nonce=42,
    )


def decode_legacy_tx(raw: bytes) -> dict:
    """Decode a signed legacy transaction envelope."""
    nonce, gas_price, gas, to, value, data, v, r, s = rlp.decode(raw)
    return {
        "nonce": int.from_bytes(nonce, "big"),
        "gasPrice": int.from_bytes(gas_price, "big"),
        "gas": int.from_bytes(gas, "big"),
        "to": Web3.to_checksum_address(to),
        "value": int.from_bytes(value, "big"),
        "data": data,
        "v": int.from_bytes(v, "big"),
    }


class TestTransactionRelayer:
    """Test suite for TransactionRelayer."""

    @pytest.mark.asyncio
    async def test_confirmed_relay_submits_one_transaction(self, relayer, destination, tracker, deposit, account):
        """A matching deposit is relayed once and its nonce recorded."""
        result = await relayer.relay(deposit)

        assert result.state is RelayState.CONFIRMED
        assert result.block_number == 123
        assert result.gas_used == 51_000
        assert len(destination.submitted) == 1
        assert tracker.is_processed(42)

        raw = destination.submitted[0]
        tx = decode_legacy_tx(raw)
        assert tx["to"] == DEST_BRIDGE
        assert tx["value"] == 0
        assert tx["gas"] == 300_000
        assert tx["gasPrice"] == 1_000_000_000
        assert tx["nonce"] == 0
        # EIP-155: v = chain_id * 2 + 35/36
        assert tx["v"] in (7 * 2 + 35, 7 * 2 + 36)

        selector = Web3.keccak(text="receiveFromOtherChain(address,uint256,uint256)")[:4]
        assert tx["data"][:4] == bytes(selector)
        to, amount, nonce = decode(["address", "uint256", "uint256"], tx["data"][4:])
        assert to.lower() == RECIPIENT.lower()
        assert amount == 1000
        assert nonce == 42

        assert Account.recover_transaction(raw) == account.address

    @pytest.mark.asyncio
    async def test_redelivery_is_skipped(self, relayer, destination, deposit):
        """Re-delivering a confirmed deposit produces no second submission."""
        first = await relayer.relay(deposit)
        second = await relayer.relay(deposit)

        assert first.state is RelayState.CONFIRMED
        assert second.state is RelayState.SKIPPED
        assert len(destination.submitted) == 1

    @pytest.mark.asyncio
    async def test_wrong_chain_is_skipped(self, destination, contract, account, tracker, deposit):
        """A deposit for another chain never reaches the tracker or the ledger."""
        relayer = TransactionRelayer(
            connection=destination,
            contract=contract,
            account=account,
            destination_address=DEST_BRIDGE,
            destination_chain_id=99,
            tracker=tracker,
        )

        result = await relayer.relay(deposit)

        assert result.state is RelayState.SKIPPED
        assert destination.submitted == []
        assert not tracker.is_processed(42)

    @pytest.mark.asyncio
    async def test_reverted_transaction_leaves_nonce_unprocessed(self, relayer, destination, tracker, deposit):
        """A failure status in the receipt must not mark the nonce."""
        destination.inclusion_success = False

        result = await relayer.relay(deposit)

        assert result.state is RelayState.FAILED
        assert result.error == "Transaction reverted"
        assert result.tx_hash is not None
        assert len(destination.submitted) == 1
        assert not tracker.is_processed(42)

    @pytest.mark.asyncio
    async def test_ordinal_fetch_failure_fails_before_submission(self, relayer, destination, tracker, deposit):
        """An unreachable nonce lookup drops the event without submitting."""
        destination.fail_ordinal = True

        result = await relayer.relay(deposit)

        assert result.state is RelayState.FAILED
        assert "nonce unavailable" in result.error
        assert destination.submitted == []
        assert not tracker.is_processed(42)

    @pytest.mark.asyncio
    async def test_fee_fetch_failure_fails_before_submission(self, relayer, destination, tracker, deposit):
        """An unreachable gas price lookup drops the event without submitting."""
        destination.fail_fee = True

        result = await relayer.relay(deposit)

        assert result.state is RelayState.FAILED
        assert "gas price unavailable" in result.error
        assert destination.submitted == []
        assert not tracker.is_processed(42)

    @pytest.mark.asyncio
    async def test_signing_failure_fails_before_submission(self, relayer, destination, tracker, deposit):
        """A fee the signer cannot serialize fails the event at signing."""
        destination.fee = "not-a-fee"

        result = await relayer.relay(deposit)

        assert result.state is RelayState.FAILED
        assert result.tx_hash is None
        assert destination.submitted == []
        assert not tracker.is_processed(42)

    @pytest.mark.asyncio
    async def test_submit_failure(self, relayer, destination, tracker, deposit):
        """A rejected broadcast is a terminal failure."""
        destination.fail_submit = True

        result = await relayer.relay(deposit)

        assert result.state is RelayState.FAILED
        assert result.tx_hash is None
        assert not tracker.is_processed(42)

    @pytest.mark.asyncio
    async def test_wait_failure_keeps_tx_hash(self, relayer, destination, tracker, deposit):
        """A timed-out wait reports the hash it was waiting on."""
        destination.fail_wait = True

        result = await relayer.relay(deposit)

        assert result.state is RelayState.FAILED
        assert result.tx_hash is not None
        assert len(destination.submitted) == 1
        assert not tracker.is_processed(42)

    @pytest.mark.asyncio
    async def test_failed_nonce_is_attempted_again_on_redelivery(self, relayer, destination, tracker, deposit):
        """Only confirmed nonces short-circuit; a failed one can be replayed."""
        destination.inclusion_success = False
        await relayer.relay(deposit)

        destination.inclusion_success = True
        result = await relayer.relay(deposit)

        assert result.state is RelayState.CONFIRMED
        assert len(destination.submitted) == 2
        assert tracker.is_processed(42)

    @pytest.mark.asyncio
    async def test_encoding_failure_fails_without_rpc(self, relayer, destination):
        """An amount that cannot be ABI-encoded fails before any RPC call."""
        destination.fail_ordinal = True  # would surface if reached
        bad = DepositEvent(
            sender=SENDER,
            destination_chain_id=7,
            recipient=RECIPIENT,
            amount=-1,
            nonce=43,
        )

        result = await relayer.relay(bad)

        assert result.state is RelayState.FAILED
        assert "nonce unavailable" not in result.error
        assert destination.submitted == []

    def test_build_transaction_fields(self, relayer):
        """The envelope targets the destination bridge with zero value."""
        tx = relayer.build_transaction(b"\x01\x02", ordinal=5, gas_price=10)

        assert tx == {
            "to": DEST_BRIDGE,
            "value": 0,
            "gas": 300_000,
            "gasPrice": 10,
            "nonce": 5,
            "data": b"\x01\x02",
            "chainId": 7,
        }
