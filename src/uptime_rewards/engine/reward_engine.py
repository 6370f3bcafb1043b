"""Reward engine — the public surface for attendance and settlement.

Every public method runs under one re-entrant lock, so operations are
atomic and strictly sequential even inside a threaded service.  Claims
need this: two concurrent claims reading the same cursor would pay the
same periods twice, and cap counters are shared between every account
that has owned a peer.

Guarded entry points (reads included) first consult the circuit breaker;
mutating ones also honour the emergency pause.  Administrative calls
require ``ADMIN_ROLE`` from the role authority.
"""

from __future__ import annotations

import functools
import logging
import threading
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from pydantic import BaseModel

from uptime_rewards.collaborators.base import MembershipOracle, RoleAuthority, TokenCustody
from uptime_rewards.crypto.hashing import ADMIN_ROLE, POOL_ADMIN_ROLE
from uptime_rewards.engine.circuit_breaker import CircuitBreaker
from uptime_rewards.engine.claims import ClaimProcessor, ClaimResult, ClaimStatus, clamp_max_periods
from uptime_rewards.engine.eligibility import (
    EligibilityCalculator,
    RewardBreakdown,
    RewardCalculationDetails,
    RewardTerms,
)
from uptime_rewards.engine.errors import (
    AuthorizationError,
    BatchSizeError,
    InvalidAmountError,
    InvalidTimeRangeError,
    NotPoolCreatorError,
    TransferFailedError,
    ValidationError,
)
from uptime_rewards.engine.schema_guard import MigrationProgress, SchemaGuard
from uptime_rewards.models.config import RewardConfig
from uptime_rewards.models.ledger import LegacyOnlineLedger, OnlineStatusLedger
from uptime_rewards.models.period import (
    Clock,
    SystemClock,
    period_index_of,
    reward_per_period,
)
from uptime_rewards.models.settlement import SettlementStore
from uptime_rewards.protocol.events import (
    CircuitBreakerChanged,
    ConfigUpdated,
    EmergencyWithdrawal,
    Event,
    EventType,
    MigrationProgressed,
    MiningRewardsClaimed,
    OnlineStatusSubmitted,
    make_event,
)

logger = logging.getLogger(__name__)

EventListener = Callable[[Event], None]


@dataclass
class RewardStatistics:
    total_distributed: int
    account_total_claimed: int


def _locked(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class RewardEngine:
    """Online-status reward accrual with capped, resumable claiming."""

    def __init__(
        self,
        membership: MembershipOracle,
        custody: TokenCustody,
        roles: RoleAuthority,
        config: RewardConfig | None = None,
        clock: Clock | None = None,
        legacy_ledger: LegacyOnlineLedger | None = None,
        reward_system_start_time: int | None = None,
        event_history: int = 1000,
    ) -> None:
        self.config = (config or RewardConfig()).model_copy()
        self._clock = clock or SystemClock()
        self._membership = membership
        self._custody = custody
        self._roles = roles

        self.ledger = OnlineStatusLedger()
        self.settlements = SettlementStore()
        self.schema = SchemaGuard(legacy_ledger)
        self.breaker = CircuitBreaker(self.config.cooldown_blocks)
        self._calculator = EligibilityCalculator(self.ledger, self.settlements, membership)
        self._claims = ClaimProcessor(self.ledger, self.settlements, self._calculator, custody)

        self._pool_monthly_reward: dict[int, int] = {}
        self.reward_system_start_time = (
            reward_system_start_time
            if reward_system_start_time is not None
            else self._clock.now()
        )

        self._lock = threading.RLock()
        self._listeners: list[EventListener] = []
        self._events: deque[Event] = deque(maxlen=event_history)

    # ── Events ───────────────────────────────────────────────────

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    @property
    def events(self) -> list[Event]:
        return list(self._events)

    def _emit(self, event_type: EventType, body: BaseModel) -> Event:
        event = make_event(
            event_type, body,
            block_number=self._clock.block_number(),
            timestamp=self._clock.now(),
        )
        self._events.append(event)
        # State is already committed; listener failures are only logged.
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Listener failed on %s event", event.event_type.value)
        return event

    # ── Guards ───────────────────────────────────────────────────

    def _check_breaker(self) -> None:
        if self.breaker.check(self._clock.block_number()):
            self._emit(EventType.CIRCUIT_BREAKER_RESET, CircuitBreakerChanged(auto=True))

    def _check_mutable(self) -> None:
        self._check_breaker()
        self.breaker.require_not_paused()

    def _require_admin(self, caller: str) -> None:
        if not self._roles.has_role(ADMIN_ROLE, caller):
            raise AuthorizationError(f"{caller} lacks ADMIN_ROLE")

    # ── Reward terms ─────────────────────────────────────────────

    def monthly_reward_for(self, pool_id: int) -> int:
        return self._pool_monthly_reward.get(pool_id, self.config.monthly_reward_per_peer)

    def terms_for(self, pool_id: int) -> RewardTerms:
        monthly = self.monthly_reward_for(pool_id)
        return RewardTerms(
            period_length=self.config.period_length,
            month_seconds=self.config.month_seconds,
            reward_per_period=reward_per_period(
                monthly, self.config.period_length, self.config.month_seconds
            ),
            monthly_cap=self.config.cap_for(monthly),
        )

    # ── Online status ────────────────────────────────────────────

    @_locked
    def submit_online_status(
        self,
        caller: str,
        pool_id: int,
        peer_ids: Sequence[str],
        timestamp: int,
    ) -> int:
        """Record that ``peer_ids`` were online at ``timestamp``.

        Returns the period index the batch was recorded under.
        """
        self._check_mutable()

        creator = self._membership.pool_creator(pool_id)
        if creator is None:
            raise ValidationError(f"Pool {pool_id} does not exist")
        if caller != creator and not self._roles.has_role(POOL_ADMIN_ROLE, caller):
            raise NotPoolCreatorError(f"{caller} may not submit status for pool {pool_id}")

        now = self._clock.now()
        if timestamp <= 0 or timestamp > now or timestamp < now - self.config.submission_window:
            raise InvalidTimeRangeError(
                f"Timestamp {timestamp} outside [{now - self.config.submission_window}, {now}]"
            )
        if not peer_ids or len(peer_ids) > self.config.max_batch_size:
            raise BatchSizeError(
                f"Batch of {len(peer_ids)} peers not in [1, {self.config.max_batch_size}]"
            )

        period = period_index_of(timestamp, self.config.period_length)
        added = self.ledger.mark_online(pool_id, period, peer_ids)
        self.ledger.mark_pool_submitted(pool_id)
        self.schema.record_period_data()

        logger.info(
            "Pool %d: %d peers online in period %d (%d new) submitted by %s",
            pool_id, len(peer_ids), period, added, caller,
        )
        self._emit(
            EventType.ONLINE_STATUS_SUBMITTED,
            OnlineStatusSubmitted(
                pool_id=pool_id, submitter=caller, count=len(peer_ids), period_index=period,
            ),
        )
        return period

    @_locked
    def is_online(self, pool_id: int, period_index: int, peer_id: str) -> bool:
        self._check_breaker()
        return self.ledger.is_online(pool_id, period_index, peer_id)

    @_locked
    def get_online_peer_ids(self, pool_id: int, timestamp: int) -> list[str]:
        self._check_breaker()
        return self.ledger.online_peers(
            pool_id, period_index_of(timestamp, self.config.period_length)
        )

    @_locked
    def get_online_status_since(
        self, peer_id: str, pool_id: int, since_time: int
    ) -> tuple[int, int]:
        """Returns (online_periods, completed_periods) since ``since_time``.

        ``since_time == 0`` looks back one period.
        """
        self._check_breaker()
        now = self._clock.now()
        if since_time > now:
            raise InvalidTimeRangeError(f"since_time {since_time} is in the future")
        if since_time == 0:
            since_time = max(0, now - self.config.period_length)
        return self._calculator.online_status_since(
            peer_id, pool_id, since_time,
            now=now,
            period_length=self.config.period_length,
            max_view_periods=self.config.max_view_periods,
        )

    # ── Eligibility (read-only) ──────────────────────────────────

    @_locked
    def calculate_eligible(self, account: str, peer_id: str, pool_id: int) -> int:
        self._check_breaker()
        scan = self._calculator.calculate(
            account, peer_id, pool_id,
            now=self._clock.now(),
            terms=self.terms_for(pool_id),
            system_start=self.reward_system_start_time,
            max_view_periods=self.config.max_view_periods,
        )
        return scan.amount

    @_locked
    def calculate_storage_rewards(self, account: str, peer_id: str, pool_id: int) -> int:
        """Storage-usage rewards are not part of this engine."""
        self._check_breaker()
        return 0

    @_locked
    def get_eligible_rewards(self, account: str, peer_id: str, pool_id: int) -> RewardBreakdown:
        return RewardBreakdown(
            mining=self.calculate_eligible(account, peer_id, pool_id),
            storage=self.calculate_storage_rewards(account, peer_id, pool_id),
        )

    @_locked
    def get_unclaimed_rewards(self, account: str, peer_id: str, pool_id: int) -> RewardBreakdown:
        return self.get_eligible_rewards(account, peer_id, pool_id)

    @_locked
    def get_reward_calculation_details(
        self, account: str, peer_id: str, pool_id: int
    ) -> RewardCalculationDetails:
        self._check_breaker()
        return self._calculator.details(
            account, peer_id, pool_id,
            now=self._clock.now(),
            terms=self.terms_for(pool_id),
            system_start=self.reward_system_start_time,
            max_view_periods=self.config.max_view_periods,
        )

    @_locked
    def get_effective_reward_start_time(self, account: str, peer_id: str, pool_id: int) -> int:
        self._check_breaker()
        self._calculator.require_owner(account, peer_id, pool_id)
        return self._calculator.effective_start_time(
            peer_id, pool_id, self.reward_system_start_time
        )

    # ── Claims ───────────────────────────────────────────────────

    @_locked
    def claim(
        self, account: str, peer_id: str, pool_id: int, max_periods: int = 0
    ) -> ClaimResult:
        """Settle up to ``max_periods`` periods for ``account``'s peer.

        ``max_periods`` of 0 (or above the hard maximum) means the default
        batch size.
        """
        self._check_mutable()
        limit = clamp_max_periods(
            max_periods, self.config.default_claim_periods, self.config.max_claim_periods
        )
        self._calculator.require_owner(account, peer_id, pool_id)
        self.schema.require_claimable(pool_id, self.ledger)

        update, result = self._claims.prepare(
            account, peer_id, pool_id,
            now=self._clock.now(),
            terms=self.terms_for(pool_id),
            system_start=self.reward_system_start_time,
            max_periods=limit,
        )
        self._claims.settle(update)

        logger.info(
            "Claim by %s for peer %s in pool %d: %d paid over %d/%d periods, cursor %d -> %d",
            account, peer_id[:12], pool_id, result.amount,
            result.periods_paid, result.periods_examined,
            result.previous_cursor, result.new_cursor,
        )
        self._emit(
            EventType.MINING_REWARDS_CLAIMED,
            MiningRewardsClaimed(
                account=account, peer_id=peer_id, pool_id=pool_id, amount=result.amount,
            ),
        )
        return result

    def claim_with_limit(
        self, account: str, peer_id: str, pool_id: int, max_periods: int
    ) -> ClaimResult:
        return self.claim(account, peer_id, pool_id, max_periods)

    def claim_default(self, account: str, peer_id: str, pool_id: int) -> ClaimResult:
        return self.claim(account, peer_id, pool_id, 0)

    @_locked
    def get_claim_status(self, account: str, peer_id: str, pool_id: int) -> ClaimStatus:
        self._check_breaker()
        self._calculator.require_owner(account, peer_id, pool_id)
        unclaimed = self._calculator.unclaimed_periods(
            account, peer_id, pool_id,
            now=self._clock.now(),
            period_length=self.config.period_length,
            system_start=self.reward_system_start_time,
        )
        default = min(self.config.default_claim_periods, self.config.max_claim_periods)
        return ClaimStatus(
            total_unclaimed_periods=unclaimed,
            default_periods_per_claim=default,
            max_periods_per_claim=self.config.max_claim_periods,
            estimated_claims_needed=-(-unclaimed // default),
            has_more_to_claim=unclaimed > default,
        )

    @_locked
    def get_claimed_rewards_info(
        self, account: str, peer_id: str, pool_id: int
    ) -> tuple[int, int]:
        """Returns (cursor_timestamp, total_claimed_for_peer)."""
        self._check_breaker()
        return (
            self.settlements.cursor(account, peer_id, pool_id),
            self.settlements.claimed_by_peer(account, peer_id, pool_id),
        )

    @_locked
    def get_reward_statistics(self, account: str) -> RewardStatistics:
        self._check_breaker()
        return RewardStatistics(
            total_distributed=self.settlements.total_distributed,
            account_total_claimed=self.settlements.claimed_by_account(account),
        )

    @_locked
    def monthly_rewards_claimed(self, peer_id: str, pool_id: int, month_index: int) -> int:
        self._check_breaker()
        return self.settlements.monthly_paid(peer_id, pool_id, month_index)

    # ── Circuit breaker & emergency controls ─────────────────────

    @property
    def circuit_breaker_tripped(self) -> bool:
        return self.breaker.tripped

    @property
    def paused(self) -> bool:
        return self.breaker.paused

    @_locked
    def trip_circuit_breaker(self, caller: str) -> None:
        self._require_admin(caller)
        self.breaker.trip(self._clock.block_number())
        self._emit(EventType.CIRCUIT_BREAKER_TRIPPED, CircuitBreakerChanged(by=caller))

    @_locked
    def reset_circuit_breaker(self, caller: str) -> None:
        self._require_admin(caller)
        self.breaker.reset()
        logger.info("Circuit breaker reset by %s", caller)
        self._emit(EventType.CIRCUIT_BREAKER_RESET, CircuitBreakerChanged(by=caller))

    @_locked
    def pause(self, caller: str) -> None:
        self._require_admin(caller)
        self.breaker.pause()
        self._emit(EventType.PAUSED, CircuitBreakerChanged(by=caller))

    @_locked
    def unpause(self, caller: str) -> None:
        self._require_admin(caller)
        self.breaker.unpause()
        self._emit(EventType.UNPAUSED, CircuitBreakerChanged(by=caller))

    @_locked
    def emergency_withdraw(self, caller: str, to_account: str, amount: int) -> None:
        """Move custody funds out.  Allowed whether or not the engine is paused."""
        self._require_admin(caller)
        if amount <= 0:
            raise InvalidAmountError("Withdrawal amount must be positive")
        if not to_account:
            raise ValidationError("Withdrawal recipient must not be empty")
        if not self._custody.transfer(None, to_account, amount):
            raise TransferFailedError(f"Token custody could not withdraw {amount}")
        logger.warning("Emergency withdrawal of %d to %s by %s", amount, to_account, caller)
        self._emit(
            EventType.EMERGENCY_WITHDRAWAL,
            EmergencyWithdrawal(by=caller, to_account=to_account, amount=amount),
        )

    # ── Configuration ────────────────────────────────────────────

    def _config_updated(self, key: str, old: int | None, new: int | None, pool_id: int | None = None) -> None:
        logger.info("Config %s changed %s -> %s%s", key, old, new,
                    f" for pool {pool_id}" if pool_id is not None else "")
        self._emit(
            EventType.CONFIG_UPDATED,
            ConfigUpdated(key=key, old_value=old, new_value=new, pool_id=pool_id),
        )

    @_locked
    def set_monthly_reward_per_peer(self, caller: str, amount: int) -> None:
        self._require_admin(caller)
        if amount <= 0:
            raise InvalidAmountError("Monthly reward must be positive")
        old = self.config.monthly_reward_per_peer
        self.config.monthly_reward_per_peer = amount
        self._config_updated("monthly_reward_per_peer", old, amount)

    @_locked
    def set_period_length(self, caller: str, seconds: int) -> None:
        self._require_admin(caller)
        if seconds <= 0:
            raise InvalidAmountError("Period length must be positive")
        self.schema.require_period_length_mutable()
        old = self.config.period_length
        self.config.period_length = seconds
        self._config_updated("period_length", old, seconds)

    @_locked
    def set_pool_monthly_reward(self, caller: str, pool_id: int, amount: int) -> None:
        self._require_admin(caller)
        if amount <= 0:
            raise InvalidAmountError("Monthly reward must be positive")
        if self._membership.pool_creator(pool_id) is None:
            raise ValidationError(f"Pool {pool_id} does not exist")
        old = self._pool_monthly_reward.get(pool_id)
        self._pool_monthly_reward[pool_id] = amount
        self._config_updated("pool_monthly_reward", old, amount, pool_id)

    @_locked
    def clear_pool_monthly_reward(self, caller: str, pool_id: int) -> None:
        self._require_admin(caller)
        old = self._pool_monthly_reward.pop(pool_id, None)
        self._config_updated("pool_monthly_reward", old, None, pool_id)

    # ── Schema migration ─────────────────────────────────────────

    @_locked
    def migrate_pool(self, caller: str, pool_id: int, max_operations: int) -> MigrationProgress:
        self._require_admin(caller)
        self._check_breaker()
        progress = self.schema.migrate(
            pool_id, max_operations, self.ledger, self.config.period_length
        )
        self._emit(
            EventType.MIGRATION_PROGRESSED,
            MigrationProgressed(
                pool_id=pool_id,
                processed=progress.processed,
                timestamp_cursor=progress.timestamp_cursor,
                peer_cursor=progress.peer_cursor,
                completed=progress.completed,
            ),
        )
        return progress

    def migration_cursor(self, pool_id: int) -> int:
        return self.schema.migration_cursor(pool_id)

    def migration_peer_cursor(self, pool_id: int) -> int:
        return self.schema.migration_peer_cursor(pool_id)

    def is_pool_migrated(self, pool_id: int) -> bool:
        return self.schema.is_pool_migrated(pool_id)

    @property
    def has_period_data(self) -> bool:
        return self.schema.has_period_data

    def pool_has_period_submissions(self, pool_id: int) -> bool:
        return self.ledger.pool_has_submissions(pool_id)
