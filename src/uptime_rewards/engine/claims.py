"""Claim processor — bounded, resumable settlement of earned rewards.

A claim walks forward from the peer's cursor, examining at most
``max_periods`` periods:

  offline period            → nothing owed, cursor moves past it
  online period, fits cap   → paid, cursor moves past it
  online period, over cap   → stop; cursor stays *before* it

Stopping at the first refused period keeps the unpaid period claimable
once its month has room again.  Long offline gaps are crossed for free, so
a claim can be issued on a fixed schedule without checking eligibility
first; a claim that finds nothing to pay is a valid zero settlement.

Preparation is pure.  The engine pays through token custody and only then
commits the staged ``SettlementUpdate``; a failed payout leaves the
cursor and cap counters untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from uptime_rewards.collaborators.base import TokenCustody
from uptime_rewards.engine.eligibility import EligibilityCalculator, RewardTerms, scan_periods
from uptime_rewards.engine.errors import TransferFailedError
from uptime_rewards.models.ledger import OnlineStatusLedger
from uptime_rewards.models.period import period_index_of, period_start
from uptime_rewards.models.settlement import SettlementStore, SettlementUpdate

logger = logging.getLogger(__name__)


@dataclass
class ClaimResult:
    account: str
    peer_id: str
    pool_id: int
    amount: int
    periods_examined: int
    periods_paid: int
    previous_cursor: int
    new_cursor: int
    cap_reached: bool = False


@dataclass
class ClaimStatus:
    total_unclaimed_periods: int
    default_periods_per_claim: int
    max_periods_per_claim: int
    estimated_claims_needed: int
    has_more_to_claim: bool


def clamp_max_periods(max_periods: int, default: int, maximum: int) -> int:
    """Zero or over-limit requests fall back to the default."""
    default = min(default, maximum)
    if max_periods <= 0 or max_periods > maximum:
        return default
    return max_periods


class ClaimProcessor:
    """Stages and commits claims."""

    def __init__(
        self,
        ledger: OnlineStatusLedger,
        store: SettlementStore,
        calculator: EligibilityCalculator,
        custody: TokenCustody,
    ) -> None:
        self._ledger = ledger
        self._store = store
        self._calculator = calculator
        self._custody = custody

    def prepare(
        self,
        account: str,
        peer_id: str,
        pool_id: int,
        *,
        now: int,
        terms: RewardTerms,
        system_start: int,
        max_periods: int,
    ) -> tuple[SettlementUpdate, ClaimResult]:
        """Work out what a claim would pay without changing any state."""
        self._calculator.require_owner(account, peer_id, pool_id)

        previous = self._store.cursor(account, peer_id, pool_id)
        start = self._calculator.settlement_start(account, peer_id, pool_id, system_start)
        first = period_index_of(start, terms.period_length)
        end = period_index_of(now, terms.period_length)

        scan = scan_periods(
            self._ledger, self._store, terms, pool_id, peer_id,
            first, end, max_periods=max_periods,
        )

        new_cursor = previous
        if scan.periods_examined:
            new_cursor = max(previous, period_start(scan.next_period, terms.period_length))

        update = SettlementUpdate(
            account=account,
            peer_id=peer_id,
            pool_id=pool_id,
            new_cursor=new_cursor,
            amount=scan.amount,
            month_increments=dict(scan.month_increments),
            month_caps=dict(scan.month_caps),
        )
        result = ClaimResult(
            account=account,
            peer_id=peer_id,
            pool_id=pool_id,
            amount=scan.amount,
            periods_examined=scan.periods_examined,
            periods_paid=scan.paid_periods,
            previous_cursor=previous,
            new_cursor=new_cursor,
            cap_reached=scan.cap_reached,
        )
        if scan.cap_reached:
            logger.warning(
                "Monthly cap reached for peer %s in pool %d; %d periods paid, "
                "cursor held at %d",
                peer_id[:12], pool_id, scan.paid_periods, new_cursor,
            )
        return update, result

    def settle(self, update: SettlementUpdate) -> None:
        """Pay out (if anything is owed) and commit.

        Raises:
            TransferFailedError: Custody refused the payout.  Nothing is
                committed in that case.
        """
        if update.amount > 0:
            if not self._custody.transfer(update.pool_id, update.account, update.amount):
                logger.warning(
                    "Payout of %d to %s for pool %d refused by custody",
                    update.amount, update.account, update.pool_id,
                )
                raise TransferFailedError(
                    f"Token custody could not pay {update.amount} to {update.account}"
                )
        self._store.apply(update)
