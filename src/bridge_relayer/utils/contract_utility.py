import json
import logging
from pathlib import Path
from typing import Any

from eth_abi.exceptions import DecodingError
from eth_utils.abi import abi_to_signature, event_abi_to_log_topic
from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract
from web3.contract.contract import ContractEvent, ContractFunction
from web3.exceptions import Web3Exception

from ..errors import ConfigurationError, MalformedEventError, SubmissionError

logger = logging.getLogger(__name__)

DEPOSIT_EVENT = "Deposit"
RECEIVE_FUNCTION = "receiveFromOtherChain"

# Log metadata that web3's event processing copies through untouched
_LOG_METADATA = (
    "address",
    "blockHash",
    "blockNumber",
    "logIndex",
    "transactionHash",
    "transactionIndex",
)


class BridgeContract:
    """
    Encode/decode oracle for the Bridge contract interface.

    Wraps a web3 Contract built from the artifact ABI and answers questions
    by symbolic name: event topics, log decoding and call payload encoding.
    No network connection is needed.
    """

    def __init__(self, abi: list[dict[str, Any]]) -> None:
        """
        Initialize the BridgeContract.

        Args:
            abi: Contract ABI as a list of entries

        Raises:
            ConfigurationError: If the ABI is unusable or lacks the Deposit
                event or the receive function
        """
        self.abi = abi
        self.w3 = Web3()
        try:
            self.contract: Contract = self.w3.eth.contract(abi=abi)
        except (Web3Exception, TypeError, ValueError, KeyError) as e:
            raise ConfigurationError(f"Invalid contract ABI: {e}") from e

        if not hasattr(self.contract.events, DEPOSIT_EVENT):
            raise ConfigurationError(f"ABI has no {DEPOSIT_EVENT} event")
        if not hasattr(self.contract.functions, RECEIVE_FUNCTION):
            raise ConfigurationError(f"ABI has no {RECEIVE_FUNCTION} function")

    @classmethod
    def from_artifact(cls, path: Path | str) -> "BridgeContract":
        """Load the ABI from a compiler build artifact.

        Accepts either an artifact object with an "abi" key (Foundry and
        Hardhat output) or a bare ABI list.

        Raises:
            ConfigurationError: If the file is missing or not a valid artifact
        """
        artifact_path = Path(path)
        try:
            with artifact_path.open() as file:
                contract_data: Any = json.load(file)
        except OSError as e:
            raise ConfigurationError(f"Cannot read contract artifact {artifact_path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Contract artifact {artifact_path} is not valid JSON: {e}") from e

        abi = contract_data.get("abi") if isinstance(contract_data, dict) else contract_data
        if not isinstance(abi, list):
            raise ConfigurationError(f"Contract artifact {artifact_path} has no ABI list")

        logger.debug(f"Loaded {len(abi)} ABI entries from {artifact_path}")
        return cls(abi)

    def event_signature(self, event_name: str) -> str:
        return abi_to_signature(self._event(event_name).abi)

    def event_topic(self, event_name: str) -> HexBytes:
        """Return topic0 for the named event."""
        return HexBytes(event_abi_to_log_topic(self._event(event_name).abi))

    def event_inputs(self, event_name: str) -> list[dict[str, Any]]:
        return list(self._event(event_name).abi["inputs"])

    def decode_log(self, event_name: str, raw_log: dict[str, Any]) -> dict[str, Any]:
        """
        Decode the indexed and non-indexed parameters of an event log.

        Args:
            event_name: Symbolic event name, e.g. "Deposit"
            raw_log: Mapping with "topics" and "data" (bytes or hex strings)

        Returns:
            Mapping of parameter name to decoded value

        Raises:
            MalformedEventError: If the log does not match the event schema
        """
        event = self._event(event_name)
        try:
            log_entry = {key: raw_log.get(key) for key in _LOG_METADATA}
            log_entry["topics"] = [HexBytes(topic) for topic in raw_log["topics"]]
            log_entry["data"] = HexBytes(raw_log.get("data") or b"")
            decoded = event.process_log(log_entry)
        except (Web3Exception, DecodingError, KeyError, TypeError, ValueError) as e:
            raise MalformedEventError(f"Cannot decode {event_name} log: {e}") from e
        return dict(decoded["args"])

    def encode_call(self, function_name: str, *args: Any) -> bytes:
        """
        Encode a call to the named function as selector + ABI arguments.

        Raises:
            SubmissionError: If the arguments do not match the function inputs
        """
        function = self._function(function_name)
        inputs = function.abi.get("inputs", [])
        if len(inputs) != len(args):
            raise SubmissionError(
                f"{function_name} takes {len(inputs)} arguments, got {len(args)}"
            )

        try:
            return bytes(HexBytes(self.contract.encode_abi(function_name, args=list(args))))
        except (Web3Exception, TypeError, ValueError) as e:
            raise SubmissionError(f"Cannot encode {function_name} call: {e}") from e

    def _event(self, event_name: str) -> ContractEvent:
        try:
            return getattr(self.contract.events, event_name)
        except (AttributeError, Web3Exception):
            raise MalformedEventError(f"ABI has no {event_name} event") from None

    def _function(self, function_name: str) -> ContractFunction:
        try:
            return getattr(self.contract.functions, function_name)
        except (AttributeError, Web3Exception):
            raise SubmissionError(f"ABI has no {function_name} function") from None
