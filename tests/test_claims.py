"""Tests for claiming: bounded batches, cap handling and atomic payout."""

from __future__ import annotations

import logging
import threading

import pytest

from conftest import (
    ADMIN,
    MONTH,
    PEER_1,
    PEER_2,
    PERIOD,
    POOL,
    RATE,
    START,
    USER1,
    USER2,
    make_env,
)
from uptime_rewards.engine.claims import clamp_max_periods
from uptime_rewards.engine.errors import (
    EnginePausedError,
    MembershipError,
    TransferFailedError,
)
from uptime_rewards.models.config import RewardConfig
from uptime_rewards.protocol.events import EventType

FIRST_MONTH = START // MONTH


class TestClampMaxPeriods:

    def test_zero_means_default(self):
        assert clamp_max_periods(0, 540, 540) == 540
        assert clamp_max_periods(-5, 100, 540) == 100

    def test_over_limit_means_default(self):
        assert clamp_max_periods(1000, 100, 540) == 100

    def test_within_limit_kept(self):
        assert clamp_max_periods(3, 540, 540) == 3
        assert clamp_max_periods(540, 100, 540) == 540

    def test_default_never_exceeds_maximum(self):
        assert clamp_max_periods(0, 1000, 540) == 540


class TestClaim:

    def test_full_month_then_nothing(self, env):
        env.run_online(90)
        result = env.engine.claim(USER1, PEER_1, POOL)
        assert result.amount == 7920
        assert result.periods_paid == 90
        assert result.new_cursor == START + 90 * PERIOD
        assert env.custody.balance_of(USER1) == 7920
        assert env.engine.monthly_rewards_claimed(PEER_1, POOL, FIRST_MONTH) == 7920

        again = env.engine.claim(USER1, PEER_1, POOL)
        assert again.amount == 0
        assert again.periods_examined == 0
        assert again.new_cursor == result.new_cursor
        assert env.custody.balance_of(USER1) == 7920

    def test_offline_month_between_online_months(self, env):
        env.run_online(90)
        env.run_offline(90)
        env.run_online(90)
        result = env.engine.claim_with_limit(USER1, PEER_1, POOL, 270)
        assert result.amount == 15840
        assert result.periods_examined == 270
        assert result.periods_paid == 180
        assert env.engine.monthly_rewards_claimed(PEER_1, POOL, FIRST_MONTH) == 7920
        assert env.engine.monthly_rewards_claimed(PEER_1, POOL, FIRST_MONTH + 1) == 0
        assert env.engine.monthly_rewards_claimed(PEER_1, POOL, FIRST_MONTH + 2) == 7920

    def test_offline_only_claim_advances_cursor(self, env):
        env.run_offline(10)
        result = env.engine.claim(USER1, PEER_1, POOL)
        assert result.amount == 0
        assert result.periods_examined == 10
        assert result.new_cursor == START + 10 * PERIOD
        assert env.custody.transfers == []

    def test_in_progress_period_not_claimable(self, env):
        env.engine.submit_online_status("pool-creator", POOL, [PEER_1], env.clock.now())
        env.clock.advance(PERIOD - 1)
        result = env.engine.claim(USER1, PEER_1, POOL)
        assert result.amount == 0
        assert result.new_cursor == 0

    def test_claims_resume_in_batches(self, env):
        env.run_online(10)

        status = env.engine.get_claim_status(USER1, PEER_1, POOL)
        assert status.total_unclaimed_periods == 10
        assert status.default_periods_per_claim == 540
        assert status.max_periods_per_claim == 540
        assert status.estimated_claims_needed == 1
        assert status.has_more_to_claim is False

        amounts = [env.engine.claim_with_limit(USER1, PEER_1, POOL, 3).amount for _ in range(4)]
        assert amounts == [3 * RATE, 3 * RATE, 3 * RATE, RATE]
        assert sum(amounts) == 880
        assert env.engine.get_claim_status(USER1, PEER_1, POOL).total_unclaimed_periods == 0

    def test_claim_status_with_small_default(self):
        env = make_env(RewardConfig(monthly_reward_per_peer=8000, default_claim_periods=4))
        env.run_online(10)
        status = env.engine.get_claim_status(USER1, PEER_1, POOL)
        assert status.estimated_claims_needed == 3
        assert status.has_more_to_claim is True
        assert env.engine.claim_default(USER1, PEER_1, POOL).periods_examined == 4

    def test_claim_is_idempotent_per_period(self, env):
        env.run_online(2)
        env.engine.claim(USER1, PEER_1, POOL)
        # Resubmitting already-settled periods does not make them payable again
        env.engine.submit_online_status("pool-creator", POOL, [PEER_1], START)
        assert env.engine.claim(USER1, PEER_1, POOL).amount == 0

    def test_peers_settle_independently(self, env):
        env.run_online(3, peers=[PEER_1, PEER_2])
        assert env.engine.claim(USER1, PEER_1, POOL).amount == 3 * RATE
        assert env.engine.claim(USER2, PEER_2, POOL).amount == 3 * RATE
        stats = env.engine.get_reward_statistics(USER1)
        assert stats.total_distributed == 6 * RATE
        assert stats.account_total_claimed == 3 * RATE

    def test_claimed_rewards_info(self, env):
        env.run_online(2)
        env.engine.claim(USER1, PEER_1, POOL)
        assert env.engine.get_claimed_rewards_info(USER1, PEER_1, POOL) == (
            START + 2 * PERIOD, 2 * RATE,
        )

    def test_view_matches_claim(self, env):
        env.run_online(7)
        env.run_offline(3)
        env.run_online(2)
        viewed = env.engine.calculate_eligible(USER1, PEER_1, POOL)
        assert env.engine.claim(USER1, PEER_1, POOL).amount == viewed == 9 * RATE


class TestClaimFailures:

    def test_failed_transfer_leaves_state_untouched(self):
        env = make_env(custody_balance=100)
        env.run_online(5)
        with pytest.raises(TransferFailedError):
            env.engine.claim(USER1, PEER_1, POOL)
        assert env.engine.get_claimed_rewards_info(USER1, PEER_1, POOL) == (0, 0)
        assert env.engine.monthly_rewards_claimed(PEER_1, POOL, FIRST_MONTH) == 0
        assert not [e for e in env.engine.events if e.event_type == EventType.MINING_REWARDS_CLAIMED]

        env.custody.deposit(1000)
        assert env.engine.claim(USER1, PEER_1, POOL).amount == 5 * RATE

    def test_custody_exception_propagates_without_commit(self, env, monkeypatch):
        env.run_online(2)

        def broken_transfer(pool_id, to_account, amount):
            raise RuntimeError("custody offline")

        monkeypatch.setattr(env.custody, "transfer", broken_transfer)
        with pytest.raises(RuntimeError):
            env.engine.claim(USER1, PEER_1, POOL)
        assert env.engine.get_claimed_rewards_info(USER1, PEER_1, POOL) == (0, 0)
        assert env.engine.get_reward_statistics(USER1).total_distributed == 0

    def test_non_owner_cannot_claim(self, env):
        env.run_online(2)
        with pytest.raises(MembershipError):
            env.engine.claim(USER2, PEER_1, POOL)

    def test_paused_engine_refuses_claims(self, env):
        env.run_online(2)
        env.engine.pause(ADMIN)
        with pytest.raises(EnginePausedError):
            env.engine.claim(USER1, PEER_1, POOL)
        env.engine.unpause(ADMIN)
        assert env.engine.claim(USER1, PEER_1, POOL).amount == 2 * RATE


class TestMonthlyCap:

    def test_rate_cut_does_not_strand_part_paid_month(self, env):
        env.run_online(90)
        first = env.engine.claim_with_limit(USER1, PEER_1, POOL, 45)
        assert first.amount == 45 * RATE

        # 300 * 12 = 3600 is below the 3960 month 700 already paid
        env.engine.set_monthly_reward_per_peer(ADMIN, 300)
        env.run_online(90)
        env.run_offline(270)

        result = env.engine.claim(USER1, PEER_1, POOL)
        assert not result.cap_reached
        assert result.periods_paid == 45 + 90
        assert result.amount == (45 + 90) * 3
        assert result.new_cursor == START + 450 * PERIOD
        assert env.engine.monthly_rewards_claimed(PEER_1, POOL, FIRST_MONTH) == 45 * RATE + 45 * 3
        assert env.engine.monthly_rewards_claimed(PEER_1, POOL, FIRST_MONTH + 1) == 90 * 3
        assert env.engine.get_claim_status(USER1, PEER_1, POOL).total_unclaimed_periods == 0
        assert env.engine.claim(USER1, PEER_1, POOL).amount == 0

    def test_rate_cut_with_pool_override(self, env):
        env.run_online(90)
        env.engine.claim_with_limit(USER1, PEER_1, POOL, 45)
        env.engine.set_pool_monthly_reward(ADMIN, POOL, 300)
        result = env.engine.claim(USER1, PEER_1, POOL)
        assert result.amount == 45 * 3
        assert result.new_cursor == START + 90 * PERIOD

    def test_cap_counter_never_exceeds_cap(self, env):
        env.run_online(30)
        env.engine.set_monthly_reward_per_peer(ADMIN, 90)  # 1 per period, cap 1080
        env.run_online(30)
        env.engine.set_monthly_reward_per_peer(ADMIN, 900)  # 10 per period, cap 10800
        result = env.engine.claim(USER1, PEER_1, POOL)
        assert result.amount == 60 * 10
        assert env.engine.monthly_rewards_claimed(PEER_1, POOL, FIRST_MONTH) <= 10800

    def test_pool_override_rate(self, env):
        env.run_online(2)
        env.engine.set_pool_monthly_reward(ADMIN, POOL, 9000)
        assert env.engine.calculate_eligible(USER1, PEER_1, POOL) == 2 * 100
        env.engine.clear_pool_monthly_reward(ADMIN, POOL)
        assert env.engine.calculate_eligible(USER1, PEER_1, POOL) == 2 * RATE


class TestOwnershipChange:

    def test_new_owner_starts_after_settled_periods(self, env):
        env.run_online(3)
        assert env.engine.claim(USER1, PEER_1, POOL).amount == 3 * RATE
        env.registry.transfer_ownership(POOL, PEER_1, USER2)

        with pytest.raises(MembershipError):
            env.engine.claim(USER1, PEER_1, POOL)

        assert env.engine.calculate_eligible(USER2, PEER_1, POOL) == 0
        assert env.engine.get_claim_status(USER2, PEER_1, POOL).total_unclaimed_periods == 0
        assert env.engine.claim(USER2, PEER_1, POOL).amount == 0

        env.run_online(2)
        assert env.engine.claim(USER2, PEER_1, POOL).amount == 2 * RATE

        assert env.custody.balance_of(USER1) == 3 * RATE
        assert env.custody.balance_of(USER2) == 2 * RATE
        assert env.engine.monthly_rewards_claimed(PEER_1, POOL, FIRST_MONTH) == 5 * RATE

    def test_ownership_round_trip_pays_each_period_once(self, env):
        env.run_online(4)
        env.engine.claim_with_limit(USER1, PEER_1, POOL, 2)
        env.registry.transfer_ownership(POOL, PEER_1, USER2)
        env.engine.claim(USER2, PEER_1, POOL)
        env.registry.transfer_ownership(POOL, PEER_1, USER1)
        assert env.engine.claim(USER1, PEER_1, POOL).amount == 0
        assert env.engine.get_reward_statistics(USER1).total_distributed == 4 * RATE


class TestConcurrentClaims:

    def test_parallel_claims_do_not_double_pay(self, env):
        env.run_online(90)
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(env.engine.claim(USER1, PEER_1, POOL).amount)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(results) == 7920
        assert sorted(results)[-1] == 7920
        assert env.custody.balance_of(USER1) == 7920


class TestClaimEvents:

    def test_zero_claim_still_emits(self, env):
        seen = []
        env.engine.add_listener(seen.append)
        env.engine.claim(USER1, PEER_1, POOL)
        claims = [e for e in seen if e.event_type == EventType.MINING_REWARDS_CLAIMED]
        assert len(claims) == 1
        assert claims[0].payload["amount"] == 0
        assert claims[0].payload["account"] == USER1

    def test_failing_listener_does_not_undo_claim(self, env, caplog):
        env.run_online(2)

        def broken_listener(event):
            raise RuntimeError("indexer down")

        env.engine.add_listener(broken_listener)
        with caplog.at_level(logging.ERROR, logger="uptime_rewards.engine.reward_engine"):
            result = env.engine.claim(USER1, PEER_1, POOL)

        assert result.amount == 2 * RATE
        assert env.custody.balance_of(USER1) == 2 * RATE
        assert env.engine.events[-1].event_type == EventType.MINING_REWARDS_CLAIMED
        assert "Listener failed" in caplog.text

    def test_claim_event_payload(self, env):
        env.run_online(2)
        env.engine.claim(USER1, PEER_1, POOL)
        event = env.engine.events[-1]
        assert event.event_type == EventType.MINING_REWARDS_CLAIMED
        assert event.payload == {
            "account": USER1, "peer_id": PEER_1, "pool_id": POOL, "amount": 2 * RATE,
        }
