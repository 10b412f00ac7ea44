"""
Shared data models for the bridge relayer.

This module contains data classes and types used across the relayer components.
"""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True, slots=True)
class DepositEvent:
    """A Deposit event decoded from a source-ledger log.

    Attributes:
        sender: Source-ledger account that made the deposit
        destination_chain_id: Chain ID of the ledger the deposit targets
        recipient: Destination-ledger account to credit
        amount: Amount to release on the destination ledger
        nonce: Bridge-level sequence number, used as the dedup key
    """

    sender: str
    destination_chain_id: int
    recipient: str
    amount: int
    nonce: int

    def __str__(self) -> str:
        return (
            f"Deposit(from={self.sender}, to={self.recipient}, "
            f"chain={self.destination_chain_id}, amount={self.amount}, "
            f"nonce={self.nonce})"
        )


@dataclass(frozen=True, slots=True)
class InclusionResult:
    """Outcome of a transaction once it has been included in a block."""

    success: bool
    block_number: int
    gas_used: int


class RelayState(Enum):
    """Terminal state of a single relay attempt."""
    CONFIRMED = "confirmed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class RelayResult:
    """Result of running one deposit through the transaction relayer."""

    state: RelayState
    nonce: int | None = None
    tx_hash: str | None = None
    block_number: int | None = None
    gas_used: int | None = None
    error: str | None = None
