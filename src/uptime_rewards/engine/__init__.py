"""Reward accrual and claiming engine."""

from uptime_rewards.engine.circuit_breaker import BreakerState, CircuitBreaker
from uptime_rewards.engine.claims import ClaimProcessor, ClaimResult, ClaimStatus, clamp_max_periods
from uptime_rewards.engine.eligibility import (
    EligibilityCalculator,
    PeriodScan,
    RewardBreakdown,
    RewardCalculationDetails,
    RewardTerms,
    scan_periods,
)
from uptime_rewards.engine.errors import (
    AuthorizationError,
    BatchSizeError,
    CircuitBreakerTrippedError,
    EnginePausedError,
    InvalidAmountError,
    InvalidTimeRangeError,
    MembershipError,
    MigrationIncompleteError,
    NotPoolCreatorError,
    PeriodLengthFrozenError,
    ResourceError,
    RewardEngineError,
    StateError,
    TransferFailedError,
    ValidationError,
)
from uptime_rewards.engine.reward_engine import RewardEngine, RewardStatistics
from uptime_rewards.engine.schema_guard import MigrationProgress, SchemaGuard, SchemaVersion

__all__ = [
    "AuthorizationError",
    "BatchSizeError",
    "BreakerState",
    "CircuitBreaker",
    "CircuitBreakerTrippedError",
    "ClaimProcessor",
    "ClaimResult",
    "ClaimStatus",
    "EligibilityCalculator",
    "EnginePausedError",
    "InvalidAmountError",
    "InvalidTimeRangeError",
    "MembershipError",
    "MigrationIncompleteError",
    "MigrationProgress",
    "NotPoolCreatorError",
    "PeriodLengthFrozenError",
    "PeriodScan",
    "ResourceError",
    "RewardBreakdown",
    "RewardCalculationDetails",
    "RewardEngine",
    "RewardEngineError",
    "RewardStatistics",
    "RewardTerms",
    "SchemaGuard",
    "SchemaVersion",
    "StateError",
    "TransferFailedError",
    "ValidationError",
    "clamp_max_periods",
    "scan_periods",
]
