"""Event notifications emitted by the reward engine.

Every state change (and every claim, including zero-value claims) produces
one event.  Events are plain pydantic models so listeners can serialize
them with ``model_dump_json()`` for indexers or audit logs.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Kinds of engine events."""

    # Attendance
    ONLINE_STATUS_SUBMITTED = "online_status_submitted"

    # Settlement
    MINING_REWARDS_CLAIMED = "mining_rewards_claimed"

    # Safety switches
    CIRCUIT_BREAKER_TRIPPED = "circuit_breaker_tripped"
    CIRCUIT_BREAKER_RESET = "circuit_breaker_reset"
    PAUSED = "paused"
    UNPAUSED = "unpaused"
    EMERGENCY_WITHDRAWAL = "emergency_withdrawal"

    # Configuration and schema
    CONFIG_UPDATED = "config_updated"
    MIGRATION_PROGRESSED = "migration_progressed"


class Event(BaseModel):
    """Base wrapper for all engine events."""

    event_type: EventType = Field(description="Type of event")
    block_number: int = Field(description="Block at which the event was emitted")
    timestamp: int = Field(description="Engine clock time at emission")
    payload: dict[str, Any] = Field(default_factory=dict)


class OnlineStatusSubmitted(BaseModel):
    pool_id: int
    submitter: str
    count: int
    period_index: int


class MiningRewardsClaimed(BaseModel):
    account: str
    peer_id: str
    pool_id: int
    amount: int


class CircuitBreakerChanged(BaseModel):
    by: str = Field(default="", description="Admin account, empty on auto-reset")
    auto: bool = False


class EmergencyWithdrawal(BaseModel):
    by: str
    to_account: str
    amount: int


class ConfigUpdated(BaseModel):
    key: str
    old_value: int | None
    new_value: int | None
    pool_id: int | None = None


class MigrationProgressed(BaseModel):
    pool_id: int
    processed: int
    timestamp_cursor: int
    peer_cursor: int
    completed: bool


def make_event(
    event_type: EventType,
    body: BaseModel,
    block_number: int,
    timestamp: int,
) -> Event:
    return Event(
        event_type=event_type,
        block_number=block_number,
        timestamp=timestamp,
        payload=body.model_dump(),
    )
