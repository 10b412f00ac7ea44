"""
One source -> destination relay loop.

A RelayDirection owns a log subscription on its source chain, a decoder, a
deduplication tracker and a transaction relayer for its destination chain.
Logs are handled strictly one at a time: each relay runs to confirmation
before the next log is read.
"""

import logging
from typing import TYPE_CHECKING, Any

from eth_account.signers.local import LocalAccount

from .dedup import DeduplicationTracker
from .errors import LedgerConnectionError, MalformedEventError
from .event_decoder import EventDecoder
from .models import RelayResult, RelayState
from .subscription_manager import RetryPolicy, SubscriptionManager
from .transaction_relayer import TransactionRelayer
from .utils.contract_utility import DEPOSIT_EVENT

if TYPE_CHECKING:
    from .ledger import LedgerConnection
    from .utils.contract_utility import BridgeContract

logger = logging.getLogger(__name__)


class RelayDirection:
    """Relays Deposit events from one chain to the other."""

    def __init__(
        self,
        name: str,
        source: "LedgerConnection",
        destination: "LedgerConnection",
        source_address: str,
        destination_address: str,
        contract: "BridgeContract",
        account: LocalAccount,
        tracker: DeduplicationTracker | None = None,
        retry_policy: RetryPolicy | None = None,
        gas_limit: int = 300_000,
    ) -> None:
        """
        Initialize the RelayDirection.

        Args:
            name: Label used in logs, e.g. "A->B"
            source: Connection to the chain emitting deposits
            destination: Connection to the chain receiving mirrored transactions
            source_address: Bridge contract on the source chain
            destination_address: Bridge contract on the destination chain
            contract: Encoder/decoder for the Bridge interface
            account: Signing identity of the relayer
            tracker: Deduplication tracker; a fresh in-memory one by default
            retry_policy: Backoff for opening the log subscription
            gas_limit: Gas budget for mirrored transactions
        """
        self.name = name
        self.source = source
        self.destination = destination
        self.destination_address = destination_address
        self.contract = contract
        self.account = account
        self.tracker = tracker or DeduplicationTracker()
        self.gas_limit = gas_limit

        self.decoder = EventDecoder(contract)
        self.subscriptions = SubscriptionManager(
            connection=source,
            contract_address=source_address,
            event_topic=contract.event_topic(DEPOSIT_EVENT),
            retry_policy=retry_policy,
        )
        self.relayer: TransactionRelayer | None = None
        self.running = False

        # Metrics tracking
        self.events_relayed = 0
        self.events_skipped = 0
        self.events_failed = 0
        self.events_malformed = 0
        self.resubscriptions = 0

    async def start(self) -> None:
        """
        Fetch the destination chain ID and prepare the transaction relayer.

        Raises:
            LedgerConnectionError: If the destination chain cannot be reached
        """
        await self.source.connect()
        await self.destination.connect()
        chain_id = await self.destination.network_identifier()

        self.relayer = TransactionRelayer(
            connection=self.destination,
            contract=self.contract,
            account=self.account,
            destination_address=self.destination_address,
            destination_chain_id=chain_id,
            tracker=self.tracker,
            gas_limit=self.gas_limit,
        )
        logger.info(f"[{self.name}] Relaying to chain ID {chain_id}")

    async def run(self) -> None:
        """
        Relay events until cancelled.

        Only the first open is bounded by the retry policy and ends the loop
        with LedgerConnectionError. Once live, a failed stream is torn down
        and reopened with backoff for as long as the outage lasts.
        """
        if self.relayer is None:
            await self.start()

        self.running = True
        first = True
        while self.running:
            subscription = await self.subscriptions.open(persistent=not first)
            if not first:
                self.resubscriptions += 1
                logger.info(f"[{self.name}] Resubscribed to Deposit events")
            first = False

            try:
                async for raw_log in subscription:
                    await self.handle_log(raw_log)
            except LedgerConnectionError as e:
                logger.warning(f"[{self.name}] Subscription error: {e}")
            finally:
                await self.subscriptions.close(subscription)

    async def handle_log(self, raw_log: Any) -> RelayResult | None:
        """
        Run one raw log through decode, validation and relay.

        Never raises for per-event problems; returns None for logs that
        could not be decoded.
        """
        if self.relayer is None:
            raise RuntimeError("RelayDirection.start() has not been called")

        try:
            event = self.decoder.decode(raw_log)
        except MalformedEventError as e:
            self.events_malformed += 1
            logger.warning(f"[{self.name}] Parse event: {e}")
            return None

        logger.debug(f"[{self.name}] Decoded {event}")

        try:
            result = await self.relayer.relay(event)
        except Exception as e:
            logger.error(f"[{self.name}] Error relaying nonce={event.nonce}: {e}", exc_info=True)
            result = RelayResult(state=RelayState.FAILED, nonce=event.nonce, error=str(e))

        match result.state:
            case RelayState.CONFIRMED:
                self.events_relayed += 1
            case RelayState.SKIPPED:
                self.events_skipped += 1
            case RelayState.FAILED:
                self.events_failed += 1
        return result

    def stop(self) -> None:
        self.running = False

    def get_stats(self) -> dict:
        """
        Get current direction statistics.

        Returns:
            Dictionary with current state metrics
        """
        return {
            "relayed": self.events_relayed,
            "skipped": self.events_skipped,
            "failed": self.events_failed,
            "malformed": self.events_malformed,
            "resubscriptions": self.resubscriptions,
            "processed_nonces": self.tracker.marked,
        }
