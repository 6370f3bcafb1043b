"""Collaborator interfaces — membership, token custody, roles."""

from uptime_rewards.collaborators.base import MembershipOracle, RoleAuthority, TokenCustody
from uptime_rewards.collaborators.memory import (
    InMemoryPoolRegistry,
    InMemoryTokenCustody,
    StaticRoleAuthority,
)

__all__ = [
    "InMemoryPoolRegistry",
    "InMemoryTokenCustody",
    "MembershipOracle",
    "RoleAuthority",
    "StaticRoleAuthority",
    "TokenCustody",
]
