"""Circuit breaker — a single kill-switch with block-based auto-expiry.

States:
  NORMAL → TRIPPED   (admin action only)
  TRIPPED → NORMAL   (admin reset, or first guarded call after cooldown)

A tripped breaker blocks reads as well as writes: while it is tripped the
accounting may be under investigation and its answers are not trusted.

The emergency pause is separate and narrower: it blocks mutating calls
only and has no automatic expiry.
"""

from __future__ import annotations

import logging
from enum import Enum

from uptime_rewards.engine.errors import CircuitBreakerTrippedError, EnginePausedError

logger = logging.getLogger(__name__)


class BreakerState(str, Enum):
    NORMAL = "normal"
    TRIPPED = "tripped"


class CircuitBreaker:
    """Trip flag plus the block at which it was tripped."""

    def __init__(self, cooldown_blocks: int) -> None:
        if cooldown_blocks <= 0:
            raise ValueError("cooldown_blocks must be positive")
        self._cooldown_blocks = cooldown_blocks
        self._tripped = False
        self._tripped_at_block = 0
        self._paused = False

    @property
    def state(self) -> BreakerState:
        return BreakerState.TRIPPED if self._tripped else BreakerState.NORMAL

    @property
    def tripped(self) -> bool:
        return self._tripped

    @property
    def tripped_at_block(self) -> int:
        return self._tripped_at_block

    @property
    def cooldown_blocks(self) -> int:
        return self._cooldown_blocks

    @property
    def paused(self) -> bool:
        return self._paused

    def trip(self, block_number: int) -> None:
        self._tripped = True
        self._tripped_at_block = block_number
        logger.warning("Circuit breaker tripped at block %d", block_number)

    def reset(self) -> None:
        self._tripped = False
        self._tripped_at_block = 0

    def cooldown_elapsed(self, block_number: int) -> bool:
        return block_number >= self._tripped_at_block + self._cooldown_blocks

    def check(self, block_number: int) -> bool:
        """Gate a guarded call.

        Returns True if this call cleared an expired trip.

        Raises:
            CircuitBreakerTrippedError: If tripped and still cooling down.
        """
        if not self._tripped:
            return False
        if self.cooldown_elapsed(block_number):
            logger.info(
                "Circuit breaker auto-reset at block %d (tripped at %d)",
                block_number, self._tripped_at_block,
            )
            self.reset()
            return True
        remaining = self._tripped_at_block + self._cooldown_blocks - block_number
        raise CircuitBreakerTrippedError(
            f"Circuit breaker tripped at block {self._tripped_at_block}; "
            f"{remaining} blocks of cooldown remain"
        )

    # ── Emergency pause ──────────────────────────────────────────

    def pause(self) -> None:
        self._paused = True
        logger.warning("Reward engine paused")

    def unpause(self) -> None:
        self._paused = False
        logger.info("Reward engine unpaused")

    def require_not_paused(self) -> None:
        if self._paused:
            raise EnginePausedError("Reward engine is paused")
