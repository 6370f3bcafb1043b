"""Settlement state — cursors, monthly cap counters and payout totals.

Cursors are keyed by ``(account, peer_id, pool_id)``: when ownership of a
peer moves to a new account, the new owner keeps its own cursor.  Every
commit also raises a peer-level settled boundary per ``(peer_id, pool_id)``
so that periods one owner already settled are never paid to the next.

Cap counters are keyed by ``(peer_id, pool_id, month_index)`` and are
shared by every account that ever owned the peer.  Next to each counter
the store keeps the highest cap that was in force when the month was paid:
lowering the reward rate later must not shrink room a month already had,
otherwise the first unpaid period of that month would block the cursor for
good.

Mutation goes through ``SettlementUpdate``: the claim processor stages all
changes first and the engine commits them only after the payout succeeded.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class SettlementUpdate:
    """Staged, not yet committed result of a claim."""

    account: str
    peer_id: str
    pool_id: int
    new_cursor: int
    amount: int = 0
    month_increments: dict[int, int] = field(default_factory=dict)
    month_caps: dict[int, int] = field(default_factory=dict)


class SettlementStore:
    """Per-peer settlement bookkeeping."""

    def __init__(self) -> None:
        self._cursors: dict[tuple[str, str, int], int] = {}
        self._peer_boundaries: dict[tuple[str, int], int] = {}
        self._monthly_paid: dict[tuple[str, int, int], int] = {}
        self._month_caps: dict[tuple[str, int, int], int] = {}
        self._claimed_by_account: dict[str, int] = {}
        self._claimed_by_peer: dict[tuple[str, str, int], int] = {}
        self._total_distributed: int = 0

    # ── Reads ────────────────────────────────────────────────────

    def cursor(self, account: str, peer_id: str, pool_id: int) -> int:
        return self._cursors.get((account, peer_id, pool_id), 0)

    def peer_boundary(self, peer_id: str, pool_id: int) -> int:
        """Latest cursor any owner of the peer has committed."""
        return self._peer_boundaries.get((peer_id, pool_id), 0)

    def monthly_paid(self, peer_id: str, pool_id: int, month_index: int) -> int:
        return self._monthly_paid.get((peer_id, pool_id, month_index), 0)

    def month_cap(self, peer_id: str, pool_id: int, month_index: int) -> int:
        """Highest cap in force when the month was paid (0 if never paid)."""
        return self._month_caps.get((peer_id, pool_id, month_index), 0)

    def claimed_by_account(self, account: str) -> int:
        return self._claimed_by_account.get(account, 0)

    def claimed_by_peer(self, account: str, peer_id: str, pool_id: int) -> int:
        return self._claimed_by_peer.get((account, peer_id, pool_id), 0)

    @property
    def total_distributed(self) -> int:
        return self._total_distributed

    # ── Commit ───────────────────────────────────────────────────

    def apply(self, update: SettlementUpdate) -> None:
        """Commit a staged settlement.

        The cursor only ever moves forward.
        """
        key = (update.account, update.peer_id, update.pool_id)
        current = self._cursors.get(key, 0)
        if update.new_cursor < current:
            raise ValueError(
                f"Cursor for {update.peer_id[:12]} in pool {update.pool_id} "
                f"cannot move back from {current} to {update.new_cursor}"
            )
        self._cursors[key] = update.new_cursor

        peer_key = (update.peer_id, update.pool_id)
        self._peer_boundaries[peer_key] = max(
            self._peer_boundaries.get(peer_key, 0), update.new_cursor
        )

        for month, amount in update.month_increments.items():
            month_key = (update.peer_id, update.pool_id, month)
            self._monthly_paid[month_key] = self._monthly_paid.get(month_key, 0) + amount
        for month, cap in update.month_caps.items():
            month_key = (update.peer_id, update.pool_id, month)
            self._month_caps[month_key] = max(self._month_caps.get(month_key, 0), cap)

        if update.amount:
            self._claimed_by_account[update.account] = (
                self._claimed_by_account.get(update.account, 0) + update.amount
            )
            self._claimed_by_peer[key] = self._claimed_by_peer.get(key, 0) + update.amount
            self._total_distributed += update.amount
