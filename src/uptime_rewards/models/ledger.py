"""Online-status ledger — who was online in which period of which pool.

Stored sparsely: ``(pool_id, period_index) → set[peer_id]``.  Most
(pool, period) pairs are never touched for most peers, so a dense array
would be almost entirely empty.

Records are set-once: a peer marked online for a period stays online;
repeated or reordered submissions for the same period only ever take the
union, so the ledger state is independent of submission order.

``LegacyOnlineLedger`` is the earlier layout, keyed by the raw submission
timestamp with an ordered timestamp list per pool.  It is read only by the
migration path.
"""

from __future__ import annotations

from collections.abc import Iterable


class OnlineStatusLedger:
    """Period-indexed online status store."""

    def __init__(self) -> None:
        self._online: dict[tuple[int, int], set[str]] = {}
        self._pools_with_submissions: set[int] = set()

    def mark_online(self, pool_id: int, period_index: int, peer_ids: Iterable[str]) -> int:
        """Mark peers online for a period.

        Returns the number of peers that were newly marked.
        """
        bucket = self._online.setdefault((pool_id, period_index), set())
        before = len(bucket)
        bucket.update(peer_ids)
        return len(bucket) - before

    def is_online(self, pool_id: int, period_index: int, peer_id: str) -> bool:
        bucket = self._online.get((pool_id, period_index))
        return bucket is not None and peer_id in bucket

    def online_peers(self, pool_id: int, period_index: int) -> list[str]:
        return sorted(self._online.get((pool_id, period_index), ()))

    def count_online(
        self, pool_id: int, peer_id: str, first_period: int, end_period: int
    ) -> int:
        """Online periods for a peer in ``[first_period, end_period)``."""
        return sum(
            1 for p in range(first_period, end_period)
            if self.is_online(pool_id, p, peer_id)
        )

    def mark_pool_submitted(self, pool_id: int) -> None:
        self._pools_with_submissions.add(pool_id)

    def pool_has_submissions(self, pool_id: int) -> bool:
        return pool_id in self._pools_with_submissions

    @property
    def has_data(self) -> bool:
        return any(self._online.values())

    def __len__(self) -> int:
        return sum(len(b) for b in self._online.values())


class LegacyOnlineLedger:
    """Timestamp-keyed online status (schema version 1)."""

    def __init__(self) -> None:
        self._entries: dict[int, dict[int, list[str]]] = {}  # pool → ts → peers
        self._timestamps: dict[int, list[int]] = {}           # pool → ordered ts

    def record(self, pool_id: int, timestamp: int, peer_ids: Iterable[str]) -> None:
        pool_entries = self._entries.setdefault(pool_id, {})
        if timestamp not in pool_entries:
            pool_entries[timestamp] = []
            self._timestamps.setdefault(pool_id, []).append(timestamp)
        peers = pool_entries[timestamp]
        for peer_id in peer_ids:
            if peer_id not in peers:
                peers.append(peer_id)

    def timestamps(self, pool_id: int) -> list[int]:
        return list(self._timestamps.get(pool_id, []))

    def peers_at(self, pool_id: int, timestamp: int) -> list[str]:
        return list(self._entries.get(pool_id, {}).get(timestamp, []))

    def has_pool_data(self, pool_id: int) -> bool:
        return bool(self._timestamps.get(pool_id))

    @property
    def pools(self) -> list[int]:
        return sorted(self._timestamps)
