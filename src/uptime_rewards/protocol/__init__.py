"""Engine event definitions."""

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

__all__ = [
    "CircuitBreakerChanged",
    "ConfigUpdated",
    "EmergencyWithdrawal",
    "Event",
    "EventType",
    "MigrationProgressed",
    "MiningRewardsClaimed",
    "OnlineStatusSubmitted",
    "make_event",
]
