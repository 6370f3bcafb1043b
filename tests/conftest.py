"""Shared test setup: one pool, two members, a funded custody and a manual clock."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from uptime_rewards.collaborators.memory import (
    InMemoryPoolRegistry,
    InMemoryTokenCustody,
    StaticRoleAuthority,
)
from uptime_rewards.crypto.hashing import ADMIN_ROLE, peer_key
from uptime_rewards.engine.reward_engine import RewardEngine
from uptime_rewards.models.config import RewardConfig
from uptime_rewards.models.ledger import LegacyOnlineLedger
from uptime_rewards.models.period import ManualClock

PERIOD = 8 * 60 * 60
MONTH = 30 * 24 * 60 * 60
# Aligned to both a period and a month boundary (month index 700)
START = 700 * MONTH

POOL = 1
ADMIN = "admin"
CREATOR = "pool-creator"
USER1 = "user-1"
USER2 = "user-2"
OUTSIDER = "outsider"

PEER_1 = peer_key("12D3KooWTest1")
PEER_2 = peer_key("12D3KooWTest2")
PEER_3 = peer_key("12D3KooWTest3")

MONTHLY_REWARD = 8000
RATE = 88  # 8000 // 90


@dataclass
class Env:
    engine: RewardEngine
    clock: ManualClock
    registry: InMemoryPoolRegistry
    custody: InMemoryTokenCustody
    roles: StaticRoleAuthority

    def run_online(self, periods: int, peers: list[str] | None = None) -> None:
        """Mark ``peers`` online for ``periods`` consecutive periods, ending
        with the clock at the start of the next period."""
        peers = peers or [PEER_1]
        for _ in range(periods):
            self.engine.submit_online_status(CREATOR, POOL, peers, self.clock.now())
            self.clock.advance(PERIOD)

    def run_offline(self, periods: int) -> None:
        self.clock.advance(PERIOD * periods)


def make_env(
    config: RewardConfig | None = None,
    legacy: LegacyOnlineLedger | None = None,
    custody_balance: int = 10**12,
) -> Env:
    clock = ManualClock(start_time=START, start_block=1)
    registry = InMemoryPoolRegistry()
    registry.create_pool(POOL, CREATOR)
    registry.add_member(POOL, PEER_1, USER1, joined_at=START)
    registry.add_member(POOL, PEER_2, USER2, joined_at=START)
    custody = InMemoryTokenCustody(balance=custody_balance)
    roles = StaticRoleAuthority({ADMIN_ROLE: {ADMIN}})
    engine = RewardEngine(
        membership=registry,
        custody=custody,
        roles=roles,
        config=config or RewardConfig(monthly_reward_per_peer=MONTHLY_REWARD),
        clock=clock,
        legacy_ledger=legacy,
        reward_system_start_time=START,
    )
    return Env(engine=engine, clock=clock, registry=registry, custody=custody, roles=roles)


@pytest.fixture
def env() -> Env:
    return make_env()
