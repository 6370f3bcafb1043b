"""Eligibility calculator — read-only reward accounting.

Rewards are earned per *completed* online period:

  reward_per_period = monthly_reward // periods_per_month

Periods are walked in order from the settlement start (the later of the
peer's cursor and its effective start time).  Each online period adds
``reward_per_period`` to a running tally for the calendar month the period
started in, seeded with what was already paid for that month.  The first
online period that would push its month past the cap ends the walk: later
periods are never credited ahead of an unpaid earlier one.

A month's cap is the larger of the current cap and the highest cap in
force when that month was paid before, so a later rate cut cannot leave a
part-paid month with no room.

``scan_periods`` is shared by the view path and the claim path, so a view
and a claim over the same window always agree.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from uptime_rewards.collaborators.base import MembershipOracle
from uptime_rewards.engine.errors import MembershipError
from uptime_rewards.models.ledger import OnlineStatusLedger
from uptime_rewards.models.period import (
    month_index_of,
    period_index_of,
    period_start,
)
from uptime_rewards.models.settlement import SettlementStore


@dataclass(frozen=True)
class RewardTerms:
    """Reward parameters in force for one pool."""

    period_length: int
    month_seconds: int
    reward_per_period: int
    monthly_cap: int

    def month_of(self, period_index: int) -> int:
        return month_index_of(period_index, self.period_length, self.month_seconds)


@dataclass
class PeriodScan:
    """Outcome of walking a run of periods."""

    first_period: int
    end_period: int
    periods_examined: int = 0
    online_periods: int = 0
    paid_periods: int = 0
    amount: int = 0
    next_period: int = 0
    cap_reached: bool = False
    month_increments: dict[int, int] = field(default_factory=dict)
    month_caps: dict[int, int] = field(default_factory=dict)


@dataclass
class RewardBreakdown:
    mining: int
    storage: int

    @property
    def total(self) -> int:
        return self.mining + self.storage


@dataclass
class RewardCalculationDetails:
    start_time: int
    end_time: int
    total_periods: int
    online_periods: int
    reward_per_period: int
    total_reward: int


def scan_periods(
    ledger: OnlineStatusLedger,
    store: SettlementStore,
    terms: RewardTerms,
    pool_id: int,
    peer_id: str,
    first_period: int,
    end_period: int,
    max_periods: int,
) -> PeriodScan:
    """Walk ``[first_period, end_period)`` examining at most ``max_periods``.

    ``next_period`` is the first period not yet accounted for: past every
    examined offline period and every paid online period, but never past
    an online period the cap refused.
    """
    scan = PeriodScan(first_period=first_period, end_period=end_period, next_period=first_period)

    for period in range(first_period, end_period):
        if scan.periods_examined >= max_periods:
            break
        scan.periods_examined += 1

        if not ledger.is_online(pool_id, period, peer_id):
            scan.next_period = period + 1
            continue

        scan.online_periods += 1
        month = terms.month_of(period)
        already = store.monthly_paid(peer_id, pool_id, month) + scan.month_increments.get(month, 0)
        cap = max(terms.monthly_cap, store.month_cap(peer_id, pool_id, month))
        if already + terms.reward_per_period > cap:
            scan.cap_reached = True
            break

        scan.month_increments[month] = scan.month_increments.get(month, 0) + terms.reward_per_period
        scan.month_caps[month] = cap
        scan.amount += terms.reward_per_period
        scan.paid_periods += 1
        scan.next_period = period + 1

    return scan


class EligibilityCalculator:
    """Read path over the ledger and settlement state."""

    def __init__(
        self,
        ledger: OnlineStatusLedger,
        store: SettlementStore,
        membership: MembershipOracle,
    ) -> None:
        self._ledger = ledger
        self._store = store
        self._membership = membership

    def require_owner(self, account: str, peer_id: str, pool_id: int) -> None:
        """Raise MembershipError unless ``account`` owns ``peer_id`` right now."""
        is_member, owner = self._membership.is_member(pool_id, peer_id)
        if not is_member or owner != account:
            raise MembershipError(
                f"{account} does not own peer {peer_id[:12]} in pool {pool_id}"
            )

    def effective_start_time(self, peer_id: str, pool_id: int, system_start: int) -> int:
        return max(self._membership.join_date(pool_id, peer_id), system_start)

    def settlement_start(
        self, account: str, peer_id: str, pool_id: int, system_start: int
    ) -> int:
        return max(
            self._store.cursor(account, peer_id, pool_id),
            self._store.peer_boundary(peer_id, pool_id),
            self.effective_start_time(peer_id, pool_id, system_start),
        )

    def calculate(
        self,
        account: str,
        peer_id: str,
        pool_id: int,
        *,
        now: int,
        terms: RewardTerms,
        system_start: int,
        max_view_periods: int,
    ) -> PeriodScan:
        """Tentative reward over the most recent visible window.

        Only the last ``max_view_periods`` completed periods are visible;
        backlog older than that shows up again once earlier periods are
        settled.
        """
        self.require_owner(account, peer_id, pool_id)
        start = self.settlement_start(account, peer_id, pool_id, system_start)
        first = period_index_of(start, terms.period_length)
        end = period_index_of(now, terms.period_length)
        first = max(first, end - max_view_periods)
        return scan_periods(
            self._ledger, self._store, terms, pool_id, peer_id,
            first, end, max_periods=max(0, end - first),
        )

    def details(
        self,
        account: str,
        peer_id: str,
        pool_id: int,
        *,
        now: int,
        terms: RewardTerms,
        system_start: int,
        max_view_periods: int,
    ) -> RewardCalculationDetails:
        scan = self.calculate(
            account, peer_id, pool_id,
            now=now, terms=terms, system_start=system_start,
            max_view_periods=max_view_periods,
        )
        online = self._ledger.count_online(pool_id, peer_id, scan.first_period, scan.end_period)
        return RewardCalculationDetails(
            start_time=period_start(scan.first_period, terms.period_length),
            end_time=period_start(scan.end_period, terms.period_length),
            total_periods=max(0, scan.end_period - scan.first_period),
            online_periods=online,
            reward_per_period=terms.reward_per_period,
            total_reward=scan.amount,
        )

    def unclaimed_periods(
        self,
        account: str,
        peer_id: str,
        pool_id: int,
        *,
        now: int,
        period_length: int,
        system_start: int,
    ) -> int:
        """Completed periods between the settlement start and now."""
        start = self.settlement_start(account, peer_id, pool_id, system_start)
        first = period_index_of(start, period_length)
        end = period_index_of(now, period_length)
        return max(0, end - first)

    def online_status_since(
        self,
        peer_id: str,
        pool_id: int,
        since_time: int,
        *,
        now: int,
        period_length: int,
        max_view_periods: int,
    ) -> tuple[int, int]:
        """Returns (online_periods, completed_periods) since ``since_time``."""
        first = period_index_of(since_time, period_length)
        end = period_index_of(now, period_length)
        first = max(first, end - max_view_periods)
        total = max(0, end - first)
        online = self._ledger.count_online(pool_id, peer_id, first, end)
        return online, total
