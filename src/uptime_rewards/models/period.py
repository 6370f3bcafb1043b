"""Period clock — maps wall-clock time onto fixed-width attendance periods.

A period is the half-open window ``[i * period_length, (i + 1) * period_length)``.
Only periods that have fully elapsed ever earn rewards; the period that
contains "now" is still in progress and contributes nothing.

Calendar months for the payout cap are assigned by the *start* of a
period, so a period straddling a month boundary counts toward the month
in which it began.

The engine also needs a notion of execution order for the circuit breaker
cooldown.  ``Clock`` supplies both the current timestamp and a block number;
``SystemClock`` derives them from wall time, ``ManualClock`` is stepped
explicitly (tests, replays).
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod


def period_index_of(timestamp: int, period_length: int) -> int:
    return timestamp // period_length


def period_start(period_index: int, period_length: int) -> int:
    return period_index * period_length


def month_index_of(period_index: int, period_length: int, month_seconds: int) -> int:
    """Calendar month a period's cap contribution belongs to (period-start rule)."""
    return period_start(period_index, period_length) // month_seconds


def periods_per_month(period_length: int, month_seconds: int) -> int:
    return max(1, month_seconds // period_length)


def reward_per_period(monthly_reward: int, period_length: int, month_seconds: int) -> int:
    """Per-period reward, rounded down.

    The remainder ``monthly_reward % periods_per_month`` is never paid to
    anyone.
    """
    return monthly_reward // periods_per_month(period_length, month_seconds)


# ── Time sources ────────────────────────────────────────────────────

class Clock(ABC):
    """Source of the current timestamp and block number."""

    @abstractmethod
    def now(self) -> int:
        """Current unix timestamp in whole seconds."""

    @abstractmethod
    def block_number(self) -> int:
        """Current position in execution order."""


class SystemClock(Clock):
    """Wall-clock time; one block every ``block_time`` seconds."""

    def __init__(self, block_time: float = 2.0) -> None:
        if block_time <= 0:
            raise ValueError("block_time must be positive")
        self._block_time = block_time

    def now(self) -> int:
        return int(time.time())

    def block_number(self) -> int:
        return int(time.time() / self._block_time)


class ManualClock(Clock):
    """Explicitly driven clock.

    ``advance`` moves time forward and, by default, mines one block per
    call so that time-only tests still see execution progress.
    """

    def __init__(self, start_time: int = 1_700_000_000, start_block: int = 1) -> None:
        self._now = start_time
        self._block = start_block

    def now(self) -> int:
        return self._now

    def block_number(self) -> int:
        return self._block

    def advance(self, seconds: int = 0, blocks: int = 1) -> None:
        if seconds < 0 or blocks < 0:
            raise ValueError("Clock cannot move backwards")
        self._now += seconds
        self._block += blocks

    def mine(self, blocks: int = 1) -> None:
        self.advance(seconds=0, blocks=blocks)

    def set_time(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValueError(f"Cannot rewind clock from {self._now} to {timestamp}")
        self._now = timestamp
        self._block += 1
