"""
Subscription management for Deposit logs on the source chain.

Opens the filtered log stream with capped exponential backoff and tears it
down when the stream fails, so the relay direction can open a fresh one.
The first open of a direction gives up after the policy's attempt limit;
reopening a stream that was already live keeps trying until cancelled.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .errors import LedgerConnectionError

if TYPE_CHECKING:
    from .ledger import LedgerConnection, LogSubscription

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Exponential backoff for subscription opens."""
    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 60.0

    def delay(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


class SubscriptionManager:
    """Keeps a live Deposit log subscription for one relay direction."""

    def __init__(
        self,
        connection: "LedgerConnection",
        contract_address: str,
        event_topic: Any,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """
        Initialize the SubscriptionManager.

        Args:
            connection: Source chain connection
            contract_address: Bridge contract emitting the events
            event_topic: topic0 of the Deposit event
            retry_policy: Backoff used when opening fails
        """
        self.connection = connection
        self.contract_address = contract_address
        self.event_topic = event_topic
        self.retry_policy = retry_policy or RetryPolicy()
        self.opened = 0

    async def open(self, persistent: bool = False) -> "LogSubscription":
        """
        Open a fresh subscription, retrying with backoff.

        Args:
            persistent: Retry without an attempt limit; used when reopening
                a stream that has already been live

        Returns:
            The live subscription

        Raises:
            LedgerConnectionError: If every attempt allowed by the policy failed
                and ``persistent`` is not set
        """
        attempt = 0
        while True:
            try:
                subscription = await self.connection.subscribe_filtered_logs(
                    self.contract_address, [self.event_topic]
                )
            except LedgerConnectionError as e:
                attempt += 1
                if not persistent and attempt >= self.retry_policy.max_attempts:
                    logger.error(
                        f"Subscribe failed {attempt} times on {self.contract_address}, giving up"
                    )
                    raise

                delay = self.retry_policy.delay(attempt)
                limit = "unlimited" if persistent else self.retry_policy.max_attempts
                logger.warning(f"Subscribe failed (attempt {attempt}/{limit}): {e}")
                logger.info(f"Retrying in {delay} seconds...")
                await asyncio.sleep(delay)
                continue

            self.opened += 1
            return subscription

    async def close(self, subscription: "LogSubscription") -> None:
        await subscription.unsubscribe()
