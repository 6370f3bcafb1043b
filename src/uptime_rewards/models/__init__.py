"""Data models — configuration, periods, online-status ledger, settlement state."""

from uptime_rewards.models.config import RewardConfig, load_config
from uptime_rewards.models.ledger import LegacyOnlineLedger, OnlineStatusLedger
from uptime_rewards.models.period import (
    Clock,
    ManualClock,
    SystemClock,
    month_index_of,
    period_index_of,
    period_start,
    periods_per_month,
    reward_per_period,
)
from uptime_rewards.models.settlement import SettlementStore, SettlementUpdate

__all__ = [
    "Clock",
    "LegacyOnlineLedger",
    "ManualClock",
    "OnlineStatusLedger",
    "RewardConfig",
    "SettlementStore",
    "SettlementUpdate",
    "SystemClock",
    "load_config",
    "month_index_of",
    "period_index_of",
    "period_start",
    "periods_per_month",
    "reward_per_period",
]
