"""
Store interfaces consumed by the rotation transaction and the scheduler.

The rotator never talks to a driver directly; it depends on the narrow
`TokenStore` / `TokenTransaction` protocols below so the MongoDB implementation
can be swapped for an in-memory double in tests.
"""

from __future__ import annotations

from typing import ContextManager, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class TokenTransaction(Protocol):
    """
    Write/read operations available inside one all-or-nothing transaction scope.

    Every write returns the number of documents it modified. Implementations
    raise `StoreError` on infrastructure failure.
    """

    def normalize_missing_batch(self) -> int:
        """Set `batch = 0` on every document lacking a `batch` field."""
        ...

    def activate_batch(self, batch_number: int) -> int:
        """Set `active = true` on every document with `batch == batch_number`."""
        ...

    def deactivate_other_batches(self, batch_number: int) -> int:
        """Set `active = false` on every document with `batch != batch_number`."""
        ...

    def find_active_holders(self) -> List[str]:
        """Return the usernames of every active document, as seen by this scope."""
        ...


@runtime_checkable
class TokenStore(Protocol):
    """
    Common interface for token stores.

    `transaction()` yields a `TokenTransaction`; leaving the block normally
    commits, leaving it with an exception aborts, and the scope is released
    on every path.
    """

    def transaction(self) -> ContextManager[TokenTransaction]:
        ...

    def find_current_batch(self) -> Optional[int]:
        """Batch number of any one active document, or None when nothing is active."""
        ...

    def close(self) -> None:
        ...


__all__ = ["TokenStore", "TokenTransaction"]
