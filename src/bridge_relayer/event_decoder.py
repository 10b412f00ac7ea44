#!/usr/bin/env python3
"""Event decoding for the bridge relayer.

Turns a raw Deposit log record, as delivered by a log subscription, into a
typed DepositEvent. Decoding is pure: it performs no I/O and keeps no state.
"""

import logging
from typing import Any

from web3 import Web3

from .errors import ConfigurationError, MalformedEventError
from .models import DepositEvent
from .utils.contract_utility import DEPOSIT_EVENT, BridgeContract

# Get logger for this module
logger = logging.getLogger(__name__)

# Event signature plus three indexed parameters
MIN_TOPICS = 4


class EventDecoder:
    """Decodes raw Deposit logs into DepositEvent objects."""

    def __init__(self, contract: BridgeContract, event_name: str = DEPOSIT_EVENT) -> None:
        self.contract = contract
        self.event_name = event_name

        inputs = contract.event_inputs(event_name)
        self.indexed_names = [i["name"] for i in inputs if i.get("indexed")]
        self.data_names = [i["name"] for i in inputs if not i.get("indexed")]
        if len(self.indexed_names) < 3 or len(self.data_names) < 2:
            raise ConfigurationError(
                f"{event_name} must have three indexed and two data parameters"
            )
        self.min_topics = max(MIN_TOPICS, 1 + len(self.indexed_names))

    def decode(self, raw_log: Any) -> DepositEvent:
        """
        Decode a raw log record.

        Topic 1 is the sender, topic 2 the destination chain ID and topic 3
        the recipient; amount and nonce come from the data payload.

        Args:
            raw_log: Log record as a mapping or an object with attributes

        Returns:
            The decoded DepositEvent

        Raises:
            MalformedEventError: If the record is missing topics or its data
                does not match the event schema
        """
        if hasattr(raw_log, "get"):
            log_record = dict(raw_log)
        else:
            log_record = {
                "topics": getattr(raw_log, "topics", None),
                "data": getattr(raw_log, "data", b""),
            }
        topics = log_record.get("topics") or []

        if len(topics) < self.min_topics:
            raise MalformedEventError(
                f"Expected at least {self.min_topics} topics, got {len(topics)}"
            )

        args = self.contract.decode_log(self.event_name, log_record)
        sender, chain_id, recipient = (args[name] for name in self.indexed_names[:3])
        amount, nonce = (args[name] for name in self.data_names[:2])

        try:
            return DepositEvent(
                sender=Web3.to_checksum_address(sender),
                destination_chain_id=int(chain_id),
                recipient=Web3.to_checksum_address(recipient),
                amount=int(amount),
                nonce=int(nonce),
            )
        except (TypeError, ValueError) as e:
            raise MalformedEventError(f"{self.event_name} has unexpected field types: {e}") from e
