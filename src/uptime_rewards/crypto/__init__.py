"""Identifier utilities — role and peer keys."""

from uptime_rewards.crypto.hashing import ADMIN_ROLE, POOL_ADMIN_ROLE, peer_key, role_id

__all__ = [
    "ADMIN_ROLE",
    "POOL_ADMIN_ROLE",
    "peer_key",
    "role_id",
]
