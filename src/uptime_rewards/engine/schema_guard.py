"""Schema guard — frozen configuration and incremental ledger migration.

Period indices only mean something relative to the period length that
produced them, so the period length is frozen the first time any
period-indexed record exists.

Legacy (timestamp-keyed) data is copied into the period-indexed ledger
by a resumable, two-level cursor:

  timestamp cursor: index into the pool's ordered legacy timestamps
  peer cursor:      index into the peer list stored at that timestamp

Each copied peer is one operation.  A call processes at most
``max_operations`` and persists both cursors, so a pool with a large
history is migrated over many calls.  Re-running a finished migration is a
no-op, and copying the same peer twice is harmless because the ledger
only ever ORs bits in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum

from uptime_rewards.engine.errors import (
    MigrationIncompleteError,
    PeriodLengthFrozenError,
    ValidationError,
)
from uptime_rewards.models.ledger import LegacyOnlineLedger, OnlineStatusLedger
from uptime_rewards.models.period import period_index_of

logger = logging.getLogger(__name__)


class SchemaVersion(IntEnum):
    LEGACY = 1
    PERIOD_INDEXED = 2


@dataclass
class MigrationProgress:
    pool_id: int
    processed: int
    timestamp_cursor: int
    peer_cursor: int
    completed: bool


class SchemaGuard:
    """Tracks which ledger layout holds data and how far migration got."""

    schema_version = SchemaVersion.PERIOD_INDEXED

    def __init__(self, legacy: LegacyOnlineLedger | None = None) -> None:
        self.legacy = legacy or LegacyOnlineLedger()
        self._has_period_data = False
        self._timestamp_cursor: dict[int, int] = {}
        self._peer_cursor: dict[int, int] = {}

    @property
    def has_period_data(self) -> bool:
        return self._has_period_data

    def record_period_data(self) -> None:
        if not self._has_period_data:
            logger.info("First period-indexed record written; period length is now frozen")
        self._has_period_data = True

    def require_period_length_mutable(self) -> None:
        if self._has_period_data:
            raise PeriodLengthFrozenError(
                "Period length cannot change after period-indexed data exists"
            )

    # ── Migration state ──────────────────────────────────────────

    def migration_cursor(self, pool_id: int) -> int:
        return self._timestamp_cursor.get(pool_id, 0)

    def migration_peer_cursor(self, pool_id: int) -> int:
        return self._peer_cursor.get(pool_id, 0)

    def is_pool_migrated(self, pool_id: int) -> bool:
        return self.migration_cursor(pool_id) >= len(self.legacy.timestamps(pool_id))

    def require_claimable(self, pool_id: int, ledger: OnlineStatusLedger) -> None:
        """Refuse settlement for pools whose history still sits in the old layout."""
        if ledger.pool_has_submissions(pool_id):
            return
        if self.legacy.has_pool_data(pool_id) and not self.is_pool_migrated(pool_id):
            raise MigrationIncompleteError(
                f"Pool {pool_id} has legacy online status that is not migrated yet"
            )

    def migrate(
        self,
        pool_id: int,
        max_operations: int,
        ledger: OnlineStatusLedger,
        period_length: int,
    ) -> MigrationProgress:
        """Copy up to ``max_operations`` legacy entries into ``ledger``."""
        if max_operations <= 0:
            raise ValidationError("max_operations must be positive")

        timestamps = self.legacy.timestamps(pool_id)
        ts_i = self.migration_cursor(pool_id)
        peer_i = self.migration_peer_cursor(pool_id)
        processed = 0

        while ts_i < len(timestamps) and processed < max_operations:
            ts = timestamps[ts_i]
            peers = self.legacy.peers_at(pool_id, ts)
            period = period_index_of(ts, period_length)
            while peer_i < len(peers) and processed < max_operations:
                ledger.mark_online(pool_id, period, [peers[peer_i]])
                peer_i += 1
                processed += 1
            if peer_i >= len(peers):
                ts_i += 1
                peer_i = 0

        self._timestamp_cursor[pool_id] = ts_i
        self._peer_cursor[pool_id] = peer_i
        if processed:
            self.record_period_data()

        completed = ts_i >= len(timestamps)
        logger.info(
            "Migrated %d legacy entries for pool %d (cursor %d/%d, peer %d)%s",
            processed, pool_id, ts_i, len(timestamps), peer_i,
            " - complete" if completed else "",
        )
        return MigrationProgress(
            pool_id=pool_id,
            processed=processed,
            timestamp_cursor=ts_i,
            peer_cursor=peer_i,
            completed=completed,
        )
