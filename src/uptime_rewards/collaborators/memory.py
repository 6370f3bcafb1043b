"""In-memory collaborator implementations.

Useful for tests, simulations and single-process deployments where pool
membership and token balances live next to the engine.
"""

from __future__ import annotations

from dataclasses import dataclass

from uptime_rewards.collaborators.base import MembershipOracle, RoleAuthority, TokenCustody


@dataclass
class PoolMember:
    account: str
    joined_at: int


class InMemoryPoolRegistry(MembershipOracle):
    """Pools, their creators and their members."""

    def __init__(self) -> None:
        self._creators: dict[int, str] = {}
        self._members: dict[int, dict[str, PoolMember]] = {}

    def create_pool(self, pool_id: int, creator: str) -> None:
        if pool_id in self._creators:
            raise ValueError(f"Pool {pool_id} already exists")
        self._creators[pool_id] = creator
        self._members[pool_id] = {}

    def add_member(self, pool_id: int, peer_id: str, account: str, joined_at: int) -> None:
        if pool_id not in self._creators:
            raise ValueError(f"Pool {pool_id} does not exist")
        self._members[pool_id][peer_id] = PoolMember(account=account, joined_at=joined_at)

    def remove_member(self, pool_id: int, peer_id: str) -> None:
        self._members.get(pool_id, {}).pop(peer_id, None)

    def transfer_ownership(self, pool_id: int, peer_id: str, new_account: str) -> None:
        member = self._members.get(pool_id, {}).get(peer_id)
        if member is None:
            raise ValueError(f"Peer {peer_id[:12]} is not in pool {pool_id}")
        member.account = new_account

    # ── MembershipOracle ─────────────────────────────────────────

    def is_member(self, pool_id: int, peer_id: str) -> tuple[bool, str]:
        member = self._members.get(pool_id, {}).get(peer_id)
        if member is None:
            return False, ""
        return True, member.account

    def join_date(self, pool_id: int, peer_id: str) -> int:
        member = self._members.get(pool_id, {}).get(peer_id)
        return member.joined_at if member else 0

    def pool_creator(self, pool_id: int) -> str | None:
        return self._creators.get(pool_id)


class InMemoryTokenCustody(TokenCustody):
    """Balance-backed custody.  Refuses transfers it cannot cover."""

    def __init__(self, balance: int = 0) -> None:
        self._balance = balance
        self._balances: dict[str, int] = {}
        self._transfers: list[tuple[int | None, str, int]] = []

    @property
    def balance(self) -> int:
        return self._balance

    def deposit(self, amount: int) -> None:
        if amount <= 0:
            raise ValueError("Deposit must be positive")
        self._balance += amount

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    @property
    def transfers(self) -> list[tuple[int | None, str, int]]:
        return list(self._transfers)

    def transfer(self, pool_id: int | None, to_account: str, amount: int) -> bool:
        if amount <= 0 or amount > self._balance:
            return False
        self._balance -= amount
        self._balances[to_account] = self._balances.get(to_account, 0) + amount
        self._transfers.append((pool_id, to_account, amount))
        return True


class StaticRoleAuthority(RoleAuthority):
    """Role table edited directly (no timelock, no quorum)."""

    def __init__(self, grants: dict[str, set[str]] | None = None) -> None:
        self._grants: dict[str, set[str]] = {
            role: set(accounts) for role, accounts in (grants or {}).items()
        }

    def grant(self, role: str, account: str) -> None:
        self._grants.setdefault(role, set()).add(account)

    def revoke(self, role: str, account: str) -> None:
        self._grants.get(role, set()).discard(account)

    def has_role(self, role: str, account: str) -> bool:
        return account in self._grants.get(role, set())
