"""Identifier derivation for roles and peers."""

from __future__ import annotations

import hashlib


def sha256(data: str | bytes) -> str:
    """Compute SHA-256 hash of data."""
    if isinstance(data, str):
        data = data.encode()
    return hashlib.sha256(data).hexdigest()


def role_id(name: str) -> str:
    """Stable identifier for a named role (e.g. ``"ADMIN_ROLE"``)."""
    return sha256(name)


def peer_key(libp2p_peer_id: str) -> str:
    """Fixed-width key for a libp2p peer ID string.

    Peer IDs such as ``12D3KooW...`` vary in length; the ledger and
    settlement stores key peers by this 64-char digest instead.
    """
    if not libp2p_peer_id:
        raise ValueError("Peer ID must not be empty")
    return sha256(libp2p_peer_id)


ADMIN_ROLE = role_id("ADMIN_ROLE")
POOL_ADMIN_ROLE = role_id("POOL_ADMIN_ROLE")
