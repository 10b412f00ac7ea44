#!/usr/bin/env python3
"""Configuration management for the bridge relayer.

This module provides type-safe configuration dataclasses with validation
for the two-way bridge relayer. Configuration is loaded from environment
variables with local development defaults for the RPC endpoints.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from web3 import Web3

from .errors import ConfigurationError

# Get logger for this module
logger = logging.getLogger(__name__)

DEFAULT_CHAIN_A_RPC = "ws://localhost:8545"
DEFAULT_CHAIN_B_RPC = "ws://localhost:8546"
DEFAULT_ABI_PATH = "out/Bridge.sol/Bridge.json"


def to_websocket_url(rpc_url: str) -> str:
    """Convert an HTTP RPC URL to its WebSocket equivalent."""
    if rpc_url.startswith("https://"):
        return rpc_url.replace("https://", "wss://", 1)
    if rpc_url.startswith("http://"):
        return rpc_url.replace("http://", "ws://", 1)
    return rpc_url


@dataclass(frozen=True, slots=True)
class ChainConfig:
    """Configuration for one side of the bridge.

    Attributes:
        name: Short label used in logs ("A" or "B")
        rpc_url: WebSocket RPC endpoint (http(s) URLs are converted)
        bridge_address: Checksummed address of the Bridge contract
    """

    name: str
    rpc_url: str
    bridge_address: str

    def __post_init__(self) -> None:
        """Validate chain configuration."""
        if not self.rpc_url:
            raise ConfigurationError(f"RPC URL for chain {self.name} is required")

        rpc_url = to_websocket_url(self.rpc_url)
        parsed = urlparse(rpc_url)
        if parsed.scheme not in ("ws", "wss"):
            raise ConfigurationError(
                f"Invalid RPC URL scheme for chain {self.name}: {parsed.scheme}. "
                "Expected ws, wss, http or https"
            )
        object.__setattr__(self, "rpc_url", rpc_url)

        if not self.bridge_address:
            raise ConfigurationError(
                f"Bridge address for chain {self.name} is required "
                f"(BRIDGE_{self.name}_ADDRESS)"
            )

        if not Web3.is_address(self.bridge_address):
            raise ConfigurationError(
                f"Invalid bridge address for chain {self.name}: {self.bridge_address}"
            )

        checksummed = Web3.to_checksum_address(self.bridge_address)
        if checksummed != self.bridge_address:
            # Use object.__setattr__ since dataclass is frozen
            object.__setattr__(self, "bridge_address", checksummed)


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Backoff settings for opening log subscriptions."""
    max_attempts: int = 5
    base_delay: float = 1.0  # seconds
    max_delay: float = 60.0  # seconds

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError(f"Max attempts must be at least 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ConfigurationError(f"Base delay must be non-negative, got {self.base_delay}")
        if self.max_delay < self.base_delay:
            raise ConfigurationError(
                f"Max delay ({self.max_delay}) must not be below base delay ({self.base_delay})"
            )


@dataclass(frozen=True, slots=True)
class TransactionConfig:
    """Settings for mirrored transactions on the destination chain."""
    gas_limit: int = 300_000
    receipt_timeout: float = 120.0  # seconds

    def __post_init__(self) -> None:
        if self.gas_limit <= 0:
            raise ConfigurationError(f"Gas limit must be positive, got {self.gas_limit}")
        if self.receipt_timeout <= 0:
            raise ConfigurationError(
                f"Receipt timeout must be positive, got {self.receipt_timeout}"
            )


@dataclass(frozen=True, slots=True)
class RelayerConfig:
    """Main configuration for the bridge relayer.

    Attributes:
        chain_a: Configuration for ledger A
        chain_b: Configuration for ledger B
        private_key: Hex private key of the relayer account
        abi_path: Path to the Bridge build artifact
        retry: Subscription retry policy settings
        transaction: Mirrored transaction settings
        status_log_interval: Seconds between periodic status lines
    """

    chain_a: ChainConfig
    chain_b: ChainConfig
    private_key: str
    abi_path: Path = Path(DEFAULT_ABI_PATH)
    retry: RetryConfig = field(default_factory=RetryConfig)
    transaction: TransactionConfig = field(default_factory=TransactionConfig)
    status_log_interval: int = 30

    def __post_init__(self) -> None:
        """Validate relayer configuration."""
        if not self.private_key:
            raise ConfigurationError("PRIVATE_KEY environment variable is required")

        key = self.private_key.removeprefix("0x")
        if len(key) != 64:
            raise ConfigurationError(
                f"Invalid private key length. Expected 64 hex characters, got {len(key)}"
            )

        try:
            int(key, 16)
        except ValueError:
            raise ConfigurationError(
                "Invalid private key format. Must be hexadecimal"
            ) from None

        if self.status_log_interval <= 0:
            raise ConfigurationError(
                f"Status log interval must be positive, got {self.status_log_interval}"
            )

    @classmethod
    def from_env(cls) -> "RelayerConfig":
        """Load configuration from environment variables.

        Returns:
            RelayerConfig instance with loaded values

        Raises:
            ConfigurationError: If required variables are missing or invalid
        """
        chain_a = ChainConfig(
            name="A",
            rpc_url=os.environ.get("CHAIN_A_RPC") or DEFAULT_CHAIN_A_RPC,
            bridge_address=os.environ.get("BRIDGE_A_ADDRESS", ""),
        )
        chain_b = ChainConfig(
            name="B",
            rpc_url=os.environ.get("CHAIN_B_RPC") or DEFAULT_CHAIN_B_RPC,
            bridge_address=os.environ.get("BRIDGE_B_ADDRESS", ""),
        )

        retry = RetryConfig(
            max_attempts=_env_number("SUBSCRIBE_MAX_RETRIES", int, 5),
            base_delay=_env_number("SUBSCRIBE_BASE_DELAY", float, 1.0),
            max_delay=_env_number("SUBSCRIBE_MAX_DELAY", float, 60.0),
        )
        transaction = TransactionConfig(
            gas_limit=_env_number("GAS_LIMIT", int, 300_000),
            receipt_timeout=_env_number("RECEIPT_TIMEOUT", float, 120.0),
        )

        return cls(
            chain_a=chain_a,
            chain_b=chain_b,
            private_key=os.environ.get("PRIVATE_KEY", ""),
            abi_path=Path(os.environ.get("BRIDGE_ABI_PATH") or DEFAULT_ABI_PATH),
            retry=retry,
            transaction=transaction,
            status_log_interval=_env_number("STATUS_LOG_INTERVAL", int, 30),
        )

    def log_config(self) -> None:
        """Log the configuration in a readable format (key redacted)."""
        logger.info("=" * 60)
        logger.info("Bridge Relayer Configuration")
        logger.info("=" * 60)

        for chain in (self.chain_a, self.chain_b):
            logger.info(f"Chain {chain.name}:")
            logger.info(f"  RPC URL: {chain.rpc_url}")
            logger.info(f"  Bridge: {chain.bridge_address}")

        logger.info("Relayer Settings:")
        logger.info(f"  ABI Artifact: {self.abi_path}")
        logger.info(f"  Gas Limit: {self.transaction.gas_limit}")
        logger.info(f"  Receipt Timeout: {self.transaction.receipt_timeout} seconds")
        logger.info(
            f"  Subscribe Retries: {self.retry.max_attempts} "
            f"(backoff {self.retry.base_delay}s..{self.retry.max_delay}s)"
        )
        logger.info(f"  Private Key: {'[SET]' if self.private_key else '[NOT SET]'}")
        logger.info("=" * 60)


def _env_number(name: str, kind: type, default: int | float) -> int | float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return kind(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
