#!/usr/bin/env python3
"""Entry point for the Bridge Relayer daemon.

Loads configuration from the environment (and an optional .env file),
then relays Deposit events between chain A and chain B until interrupted.
"""

import argparse
import asyncio
import logging
import os
import signal
import sys

from dotenv import load_dotenv


# Configure logging before any other imports create loggers
def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_level: int = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


# Get logger for this module
logger = logging.getLogger(__name__)

from bridge_relayer.errors import ConfigurationError
from bridge_relayer.relayer import BridgeRelayer


async def main() -> int:
    """Main entry point for the Bridge Relayer.

    Returns:
        Process exit code
    """
    load_dotenv()

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Bridge Relayer - mirror Deposit events between two chains",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables:
  CHAIN_A_RPC        - WebSocket RPC for chain A (default: ws://localhost:8545)
  CHAIN_B_RPC        - WebSocket RPC for chain B (default: ws://localhost:8546)
  BRIDGE_A_ADDRESS   - Bridge contract on chain A (required)
  BRIDGE_B_ADDRESS   - Bridge contract on chain B (required)
  PRIVATE_KEY        - Relayer signing key (required)
  BRIDGE_ABI_PATH    - Bridge build artifact (default: out/Bridge.sol/Bridge.json)
  LOG_LEVEL          - Logging level (can be overridden with --log-level)
        """
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: INFO)"
    )
    args: argparse.Namespace = parser.parse_args()

    setup_logging(args.log_level)

    try:
        relayer = BridgeRelayer.from_env()
    except ConfigurationError as e:
        logger.error(f"Configuration Error: {e}")
        logger.error("Set BRIDGE_A_ADDRESS, BRIDGE_B_ADDRESS, PRIVATE_KEY")
        return 1

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, relayer.stop)
        except NotImplementedError:
            pass  # Windows: fall back to KeyboardInterrupt

    try:
        await relayer.run()
    except Exception as e:
        logger.error(f"Fatal Error: {e}", exc_info=True)
        return 1

    logger.info("Shut down gracefully")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
        sys.exit(0)
