"""
Bridge Relayer implementation.

This module contains the main relayer service that runs the two relay
directions (A -> B and B -> A) side by side and manages their lifetime.
"""

import asyncio
import logging

from eth_account import Account

from .config import ChainConfig, RelayerConfig
from .ledger import LedgerConnection
from .relay_direction import RelayDirection
from .subscription_manager import RetryPolicy
from .utils.contract_utility import BridgeContract

logger = logging.getLogger(__name__)


class BridgeRelayer:
    """
    Main relayer service that orchestrates both relay directions.

    Each direction runs as its own task with its own connections and
    deduplication tracker; the two share nothing but the signing identity.
    """

    def __init__(self, config: RelayerConfig, contract: BridgeContract) -> None:
        """
        Initialize the Bridge Relayer.

        Args:
            config: Relayer configuration
            contract: Encoder/decoder for the Bridge interface
        """
        self.config = config
        self.contract = contract
        self.account = Account.from_key(config.private_key)
        self.running = False
        self.shutdown_event = asyncio.Event()

        retry_policy = RetryPolicy(
            max_attempts=config.retry.max_attempts,
            base_delay=config.retry.base_delay,
            max_delay=config.retry.max_delay,
        )

        self.directions = [
            self._build_direction(config.chain_a, config.chain_b, retry_policy),
            self._build_direction(config.chain_b, config.chain_a, retry_policy),
        ]
        logger.info(f"Relayer account: {self.account.address}")

    def _build_direction(
        self, source: ChainConfig, destination: ChainConfig, retry_policy: RetryPolicy
    ) -> RelayDirection:
        timeout = self.config.transaction.receipt_timeout
        return RelayDirection(
            name=f"{source.name}->{destination.name}",
            source=LedgerConnection(source.name, source.rpc_url, receipt_timeout=timeout),
            destination=LedgerConnection(destination.name, destination.rpc_url, receipt_timeout=timeout),
            source_address=source.bridge_address,
            destination_address=destination.bridge_address,
            contract=self.contract,
            account=self.account,
            retry_policy=retry_policy,
            gas_limit=self.config.transaction.gas_limit,
        )

    @classmethod
    def from_env(cls) -> "BridgeRelayer":
        """
        Create a BridgeRelayer instance from environment variables.

        Raises:
            ConfigurationError: If required variables or the ABI artifact are missing
        """
        config = RelayerConfig.from_env()
        config.log_config()
        contract = BridgeContract.from_artifact(config.abi_path)
        return cls(config, contract)

    async def _periodic_status_logger(self) -> None:
        """Log status periodically while running."""
        while self.running:
            await asyncio.sleep(self.config.status_log_interval)
            for direction in self.directions:
                stats = direction.get_stats()
                logger.info(
                    f"Status [{direction.name}]: {stats['relayed']} relayed, "
                    f"{stats['skipped']} skipped, {stats['failed']} failed, "
                    f"{stats['malformed']} malformed, "
                    f"{stats['resubscriptions']} resubscriptions"
                )

    async def _check_task_health(self, tasks: dict[str, asyncio.Task]) -> bool:
        """Check if any critical task has failed."""
        for name, task in tasks.items():
            if task.done() and name != "status":
                try:
                    await task
                except Exception as e:
                    logger.error(f"{name} task failed: {e}", exc_info=True)
                    raise
                return False
        return True

    async def _cleanup_tasks(self, tasks: dict[str, asyncio.Task]) -> None:
        """Cancel tasks and close every connection."""
        for direction in self.directions:
            direction.stop()

        for task in tasks.values():
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass  # Expected when cancelling

        for direction in self.directions:
            await direction.source.disconnect()
            await direction.destination.disconnect()

    async def run(self) -> None:
        """
        Run both directions until stop() is called.

        Raises:
            LedgerConnectionError: If a direction cannot connect or open its
                first subscription
        """
        self.running = True
        logger.info("Relay started, running symmetric handlers for both chains...")

        tasks: dict[str, asyncio.Task] = {}
        try:
            for direction in self.directions:
                tasks[direction.name] = asyncio.create_task(direction.run())
            tasks["status"] = asyncio.create_task(self._periodic_status_logger())

            while self.running:
                try:
                    await asyncio.wait_for(self.shutdown_event.wait(), timeout=1.0)
                    break  # Shutdown requested
                except asyncio.TimeoutError:
                    pass  # Continue running

                if not await self._check_task_health(tasks):
                    logger.error("Relay direction stopped, shutting down")
                    break
        finally:
            self.running = False
            await self._cleanup_tasks(tasks)
            logger.info("Bridge Relayer stopped")

    def stop(self) -> None:
        """Stop the relayer service."""
        self.running = False
        self.shutdown_event.set()

    def get_stats(self) -> dict[str, dict]:
        return {direction.name: direction.get_stats() for direction in self.directions}
