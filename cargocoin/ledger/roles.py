"""
Role registry for privileged ledger operations.

Roles are tags mapped to sets of addresses. The registry answers
membership questions and computes grant/revoke changes; it never decides
who may change membership. That check happens in the logic layer, as a
guard clause at the top of each operation.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Iterable, Mapping, Set

from .addresses import Address
from .errors import UnknownRole


class Role(Enum):
    """Named roles. Values are the canonical tags used in events and snapshots."""
    ADMIN = "ADMIN_ROLE"
    MINTER = "MINTER_ROLE"
    PAUSER = "PAUSER_ROLE"
    UPGRADER = "UPGRADER_ROLE"

    @classmethod
    def parse(cls, value: "str | Role") -> "Role":
        """Accept a Role, its tag ("MINTER_ROLE") or its name ("minter")."""
        if isinstance(value, Role):
            return value
        text = str(value).strip()
        for role in cls:
            if text == role.value or text.upper() == role.name:
                return role
        raise UnknownRole(value)


# Every role is administered by ADMIN.
ROLE_ADMIN: Mapping[Role, Role] = {role: Role.ADMIN for role in Role}


class RoleRegistry:
    """Mapping of role tag to the set of addresses holding it."""

    def __init__(self, members: Mapping[Role, Iterable[Address]] | None = None):
        self._members: Dict[Role, Set[Address]] = {role: set() for role in Role}
        if members:
            for role, accounts in members.items():
                self._members[Role.parse(role)].update(accounts)

    def has_role(self, role: Role, account: Address) -> bool:
        return account in self._members[role]

    def members(self, role: Role) -> FrozenSet[Address]:
        return frozenset(self._members[role])

    def roles_of(self, account: Address) -> FrozenSet[Role]:
        return frozenset(role for role, accounts in self._members.items() if account in accounts)

    def grant(self, role: Role, account: Address) -> bool:
        """Add ``account`` to ``role``. Returns True if membership changed."""
        if account in self._members[role]:
            return False
        self._members[role].add(account)
        return True

    def revoke(self, role: Role, account: Address) -> bool:
        """Remove ``account`` from ``role``. Returns True if membership changed."""
        if account not in self._members[role]:
            return False
        self._members[role].discard(account)
        return True

    def copy(self) -> "RoleRegistry":
        return RoleRegistry({role: set(accounts) for role, accounts in self._members.items()})

    def to_dict(self) -> Dict[str, list]:
        return {role.value: sorted(accounts) for role, accounts in self._members.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Iterable[str]]) -> "RoleRegistry":
        return cls({Role.parse(tag): set(accounts) for tag, accounts in data.items()})

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RoleRegistry):
            return NotImplemented
        return self._members == other._members

    def __repr__(self) -> str:
        counts = ", ".join(f"{role.name}={len(accounts)}" for role, accounts in self._members.items())
        return f"RoleRegistry({counts})"
