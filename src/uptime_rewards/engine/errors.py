"""Exceptions raised by the reward engine.

Authorization and validation errors are raised before any state is
touched.  Resource errors during payout leave cursors and cap counters
exactly as they were before the call.
"""

from __future__ import annotations


class RewardEngineError(Exception):
    """Base class for all reward engine errors."""


class AuthorizationError(RewardEngineError):
    """Caller lacks the required role."""


class NotPoolCreatorError(AuthorizationError):
    """Caller is neither the pool creator nor a pool admin."""


class ValidationError(RewardEngineError):
    """Malformed or out-of-range input."""


class InvalidTimeRangeError(ValidationError):
    """Timestamp is zero, in the future, or beyond the backfill window."""


class BatchSizeError(ValidationError):
    """Submission batch is empty or larger than the configured maximum."""


class InvalidAmountError(ValidationError):
    """Zero or otherwise invalid configuration value."""


class MembershipError(RewardEngineError):
    """Account does not currently own the peer in the pool."""


class StateError(RewardEngineError):
    """Operation not allowed in the engine's current state."""


class CircuitBreakerTrippedError(StateError):
    """All guarded operations are suspended until reset or cooldown."""


class EnginePausedError(StateError):
    """Mutating operations are suspended by an emergency pause."""


class PeriodLengthFrozenError(StateError):
    """Period length cannot change once period-indexed data exists."""


class MigrationIncompleteError(StateError):
    """Pool still holds unmigrated legacy data and no current-layout data."""


class ResourceError(RewardEngineError):
    """An external resource could not satisfy the request."""


class TransferFailedError(ResourceError):
    """Token custody refused the payout."""
