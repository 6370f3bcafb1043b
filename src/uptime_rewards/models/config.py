"""Reward engine configuration.

All amounts are integer base units of the reward token (18 decimals by
default).  Durations are in seconds, the breaker cooldown is in blocks.

The monthly *claiming* cap is a multiple of the monthly *earning* rate:
a peer earns at most ``monthly_reward_per_peer`` per month of periods, but
may bank up to twelve months of that before the per-month counter refuses
further payouts for the same calendar month.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, Field


# ── Constants ────────────────────────────────────────────────────────

TOKEN_UNIT = 10**18                         # Base units per whole token
DEFAULT_MONTHLY_REWARD_PER_PEER = 8000 * TOKEN_UNIT
DEFAULT_PERIOD_LENGTH = 8 * 60 * 60         # 8 hours → 90 periods per month
SECONDS_PER_MONTH = 30 * 24 * 60 * 60       # Calendar month for cap accounting
MAX_MONTHLY_REWARD_MULTIPLIER = 12          # Cap banks up to 12 months of earnings
MAX_BATCH_SIZE = 250                        # Peers per online-status submission
SUBMISSION_WINDOW = 7 * 24 * 60 * 60        # Historical backfill allowed
SIX_MONTHS_IN_PERIODS = 540                 # 6 × 90 periods of 8 hours
CIRCUIT_BREAKER_COOLDOWN_BLOCKS = 300


class RewardConfig(BaseModel):
    """Tunable parameters of the reward engine."""

    monthly_reward_per_peer: int = Field(
        default=DEFAULT_MONTHLY_REWARD_PER_PEER,
        gt=0,
        description="Reward paid to a fully-online peer per month",
    )
    period_length: int = Field(
        default=DEFAULT_PERIOD_LENGTH,
        gt=0,
        description="Width of one attendance period in seconds",
    )
    month_seconds: int = Field(
        default=SECONDS_PER_MONTH,
        gt=0,
        description="Length of the calendar month used for the payout cap",
    )
    max_monthly_reward_multiplier: int = Field(
        default=MAX_MONTHLY_REWARD_MULTIPLIER,
        gt=0,
        description="Monthly cap = monthly reward × this multiplier",
    )
    max_batch_size: int = Field(default=MAX_BATCH_SIZE, gt=0)
    submission_window: int = Field(
        default=SUBMISSION_WINDOW,
        gt=0,
        description="How far back a submitted timestamp may lie",
    )
    max_view_periods: int = Field(
        default=SIX_MONTHS_IN_PERIODS,
        gt=0,
        description="Periods visible to a single read",
    )
    default_claim_periods: int = Field(default=SIX_MONTHS_IN_PERIODS, gt=0)
    max_claim_periods: int = Field(default=SIX_MONTHS_IN_PERIODS, gt=0)
    cooldown_blocks: int = Field(
        default=CIRCUIT_BREAKER_COOLDOWN_BLOCKS,
        gt=0,
        description="Blocks after which a tripped breaker clears itself",
    )

    @property
    def monthly_cap(self) -> int:
        return self.monthly_reward_per_peer * self.max_monthly_reward_multiplier

    def cap_for(self, monthly_reward: int) -> int:
        """Cap for a pool whose monthly reward differs from the global one."""
        return monthly_reward * self.max_monthly_reward_multiplier


def load_config(path: str | Path) -> RewardConfig:
    """Load a RewardConfig from a JSON file.

    Missing keys fall back to defaults; invalid values raise
    ``pydantic.ValidationError``.
    """
    data = json.loads(Path(path).read_text())
    return RewardConfig.model_validate(data)
