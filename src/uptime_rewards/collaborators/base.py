"""Abstract interfaces for the engine's external collaborators.

The engine never manages pools, holds tokens, or decides who is an
administrator.  It asks these collaborators at call time and never caches
their answers, since peer ownership can change between calls.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class MembershipOracle(ABC):
    """Pool membership and peer ownership."""

    @abstractmethod
    def is_member(self, pool_id: int, peer_id: str) -> tuple[bool, str]:
        """Check whether a peer belongs to a pool.

        Returns:
            Tuple of (is_member, owner_account).  ``owner_account`` is an
            empty string when the peer is not a member.
        """

    @abstractmethod
    def join_date(self, pool_id: int, peer_id: str) -> int:
        """Unix timestamp at which the peer joined the pool (0 if unknown)."""

    @abstractmethod
    def pool_creator(self, pool_id: int) -> str | None:
        """Account allowed to submit online status for the pool.

        Returns None if the pool does not exist.
        """


class TokenCustody(ABC):
    """Holds the reward tokens and performs payouts."""

    @abstractmethod
    def transfer(self, pool_id: int | None, to_account: str, amount: int) -> bool:
        """Move ``amount`` to ``to_account``.

        Args:
            pool_id: Pool on whose behalf the payout is made (None for
                administrative withdrawals).
            to_account: Recipient.
            amount: Positive amount in base units.

        Returns:
            True on success, False if the custody lacks the capacity.
        """


class RoleAuthority(ABC):
    """Role-based authorization for administrative operations."""

    @abstractmethod
    def has_role(self, role: str, account: str) -> bool:
        """Whether ``account`` currently holds ``role``."""
