"""
Exception hierarchy for the bridge relayer.

Per-event errors (malformed, validation, submission) are contained by the
relay direction that raised them. Configuration errors and unrecoverable
connection failures stop the process.
"""


class RelayerError(Exception):
    """Base class for all relayer errors."""


class ConfigurationError(RelayerError, ValueError):
    """Missing or invalid startup configuration."""


class LedgerConnectionError(RelayerError, ConnectionError):
    """An RPC call or subscription against a ledger failed."""


class MalformedEventError(RelayerError):
    """A log record could not be decoded into a deposit event."""


class ValidationError(RelayerError):
    """A decoded event is not this direction's responsibility."""


class SubmissionError(RelayerError):
    """Building, signing, broadcasting or confirming a transaction failed."""
