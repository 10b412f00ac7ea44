"""
Deduplication tracking for relayed deposits.

A nonce is recorded only after its mirrored transaction has been confirmed
on the destination chain. Each relay direction owns its own tracker.
"""

from typing import Protocol


class NonceStore(Protocol):
    """Storage capability behind a deduplication tracker."""

    def contains(self, nonce: int) -> bool: ...

    def insert(self, nonce: int) -> None: ...


class InMemoryNonceStore:
    """Process-local nonce set. Lost on restart."""

    def __init__(self) -> None:
        self._nonces: set[int] = set()

    def contains(self, nonce: int) -> bool:
        return nonce in self._nonces

    def insert(self, nonce: int) -> None:
        self._nonces.add(nonce)

    def __len__(self) -> int:
        return len(self._nonces)


class DeduplicationTracker:
    """Answers whether a deposit nonce has already been fully relayed."""

    def __init__(self, store: NonceStore | None = None) -> None:
        """
        Initialize the tracker.

        Args:
            store: Backing nonce store; defaults to an in-memory set
        """
        self.store: NonceStore = store if store is not None else InMemoryNonceStore()
        self.marked = 0

    def is_processed(self, nonce: int) -> bool:
        return self.store.contains(nonce)

    def mark_processed(self, nonce: int) -> None:
        """Record a confirmed relay. Marking twice is harmless."""
        if self.store.contains(nonce):
            return
        self.store.insert(nonce)
        self.marked += 1
