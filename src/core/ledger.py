"""Deduplication ledger for virtualized list identities (core domain)."""

from __future__ import annotations

from typing import Iterable, List


class DedupLedger:
    """Tracks which entry identities have been resolved.

    Every identity that was parsed, whatever the outcome, is retired here so
    re-observing the same rendered window never yields a second record.
    """

    def __init__(self) -> None:
        self._processed: set[int] = set()
        self._max_identity_seen = -1

    @property
    def max_identity_seen(self) -> int:
        return self._max_identity_seen

    @property
    def processed_count(self) -> int:
        return len(self._processed)

    def is_processed(self, identity: int) -> bool:
        return identity in self._processed

    def mark_processed(self, identity: int) -> None:
        """Retire an identity. Marking it again is a no-op."""

        if identity < 0:
            raise ValueError(f"Identity must be non-negative: {identity}")
        self._processed.add(identity)
        self._max_identity_seen = max(self._max_identity_seen, identity)

    def missing_identities(self, observed: Iterable[int] = ()) -> List[int]:
        """Return identities below the max that were never seen.

        Identities visible right now are pending rather than missing. The
        result is diagnostic only; it never gates collection.
        """

        pending = set(observed)
        return [
            identity
            for identity in range(self._max_identity_seen + 1)
            if identity not in self._processed and identity not in pending
        ]

    def reset(self) -> None:
        self._processed.clear()
        self._max_identity_seen = -1
