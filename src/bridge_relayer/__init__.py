"""
Bridge Relayer package.

Two-way relay service that mirrors Deposit events between two EVM chains.
"""

from .config import RelayerConfig
from .dedup import DeduplicationTracker
from .event_decoder import EventDecoder
from .models import DepositEvent, RelayResult, RelayState
from .relay_direction import RelayDirection
from .relayer import BridgeRelayer
from .transaction_relayer import TransactionRelayer

__all__ = [
    "BridgeRelayer",
    "DeduplicationTracker",
    "DepositEvent",
    "EventDecoder",
    "RelayDirection",
    "RelayResult",
    "RelayState",
    "RelayerConfig",
    "TransactionRelayer",
]
__version__ = "0.1.0"
