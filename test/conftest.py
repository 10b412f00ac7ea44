"""Shared fixtures and in-memory ledger fakes for relayer tests."""

import asyncio
from typing import Any

import pytest
from eth_account import Account
from eth_abi import encode
from web3 import Web3

from bridge_relayer.errors import LedgerConnectionError, SubmissionError
from bridge_relayer.models import InclusionResult
from bridge_relayer.utils.contract_utility import BridgeContract

# Well-known development key (Hardhat/Anvil account #0)
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"

SOURCE_BRIDGE = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
DEST_BRIDGE = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
SENDER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
RECIPIENT = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"

BRIDGE_ABI = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "from", "type": "address"},
            {"indexed": True, "internalType": "uint256", "name": "toChainId", "type": "uint256"},
            {"indexed": True, "internalType": "address", "name": "to", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
            {"indexed": False, "internalType": "uint256", "name": "nonce", "type": "uint256"},
        ],
        "name": "Deposit",
        "type": "event",
    },
    {
        "inputs": [
            {"internalType": "address", "name": "to", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
            {"internalType": "uint256", "name": "nonce", "type": "uint256"},
        ],
        "name": "receiveFromOtherChain",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "uint256", "name": "toChainId", "type": "uint256"},
            {"internalType": "address", "name": "to", "type": "address"},
        ],
        "name": "deposit",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
]

DEPOSIT_TOPIC = Web3.keccak(text="Deposit(address,uint256,address,uint256,uint256)")


def make_deposit_log(
    nonce: int = 42,
    amount: int = 1000,
    chain_id: int = 7,
    sender: str = SENDER,
    recipient: str = RECIPIENT,
) -> dict[str, Any]:
    """Build a raw Deposit log in the shape eth_subscribe delivers."""
    return {
        "address": SOURCE_BRIDGE,
        "topics": [
            DEPOSIT_TOPIC.to_0x_hex(),
            "0x" + bytes(12).hex() + sender[2:].lower(),
            "0x" + chain_id.to_bytes(32, "big").hex(),
            "0x" + bytes(12).hex() + recipient[2:].lower(),
        ],
        "data": "0x" + encode(["uint256", "uint256"], [amount, nonce]).hex(),
        "blockNumber": "0x10",
        "transactionHash": "0x" + nonce.to_bytes(32, "big").hex(),
        "logIndex": "0x0",
    }


class FakeSubscription:
    """Async-iterable log stream that can fail after its logs are consumed."""

    def __init__(self, logs: list[Any], error: Exception | None = None) -> None:
        self.logs = list(logs)
        self.error = error
        self.unsubscribed = False
        # Set once the consumer has asked for the log after the last one
        self.drained = asyncio.Event()

    async def __aiter__(self):
        for log in self.logs:
            yield log
        self.drained.set()
        if self.error is not None:
            raise self.error
        # Stay open until cancelled
        await asyncio.Event().wait()

    async def unsubscribe(self) -> None:
        self.unsubscribed = True


class FakeLedger:
    """In-memory stand-in for LedgerConnection."""

    def __init__(self, name: str = "B", chain_id: int = 7) -> None:
        self.name = name
        self.chain_id = chain_id
        self.subscriptions: list[FakeSubscription] = []
        self.subscribe_calls = 0
        self.subscribe_failures = 0
        self.submitted: list[bytes] = []
        self.inclusion_success = True
        self.fail_ordinal = False
        self.fail_fee = False
        self.fee: Any = 1_000_000_000
        self.fail_submit = False
        self.fail_wait = False
        self.ordinal = 0
        self.connected = False

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    async def subscribe_filtered_logs(self, address: str, topics: list[Any]) -> FakeSubscription:
        self.subscribe_calls += 1
        if self.subscribe_failures:
            self.subscribe_failures -= 1
            raise LedgerConnectionError("dial failed")
        if not self.subscriptions:
            raise LedgerConnectionError("no more streams")
        return self.subscriptions.pop(0)

    async def network_identifier(self) -> int:
        return self.chain_id

    async def next_transaction_ordinal(self, account: str) -> int:
        if self.fail_ordinal:
            raise LedgerConnectionError("nonce unavailable")
        return self.ordinal

    async def suggested_fee(self) -> int:
        if self.fail_fee:
            raise LedgerConnectionError("gas price unavailable")
        return self.fee

    async def submit(self, raw_transaction: bytes) -> str:
        if self.fail_submit:
            raise SubmissionError("broadcast rejected")
        self.submitted.append(bytes(raw_transaction))
        self.ordinal += 1
        return Web3.keccak(raw_transaction).to_0x_hex()

    async def wait_for_inclusion(self, tx_hash: str) -> InclusionResult:
        if self.fail_wait:
            raise SubmissionError("timed out")
        return InclusionResult(success=self.inclusion_success, block_number=123, gas_used=51_000)


@pytest.fixture
def bridge_abi() -> list[dict[str, Any]]:
    return BRIDGE_ABI


@pytest.fixture
def contract() -> BridgeContract:
    return BridgeContract(BRIDGE_ABI)


@pytest.fixture
def account():
    return Account.from_key(TEST_PRIVATE_KEY)


@pytest.fixture
def destination() -> FakeLedger:
    return FakeLedger(name="B", chain_id=7)


@pytest.fixture
def source() -> FakeLedger:
    return FakeLedger(name="A", chain_id=1)
