"""
vigil.engine.exemptions — Exemption Registry
=============================================

Decides whether a member may ever be evicted.  A member is exempt when
ANY of these hold:

1. their id is in the exempt-user set,
2. they hold a role in the exempt-role set,
3. they own the guild,
4. they have the Administrator permission.

Pure in-memory logic.  The durable half of add/remove (write-through to
the database, rollback on failure) lives in
:class:`~vigil.services.core_service.VigilCore`.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable

from vigil.engine.membership import MemberView


class ExemptionReason(enum.StrEnum):
    """Which rule made a member exempt (first match wins, in this order)."""
    USER = "exempt_user"
    ROLE = "exempt_role"
    OWNER = "guild_owner"
    ADMIN = "administrator"


class ExemptionRegistry:
    """Exempt user ids + exempt role ids, plus the structural rules."""

    def __init__(
        self,
        user_ids: Iterable[int] = (),
        role_ids: Iterable[int] = (),
    ) -> None:
        self._users: set[int] = set(user_ids)
        self._roles: set[int] = set(role_ids)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def exemption_reason(self, member: MemberView) -> ExemptionReason | None:
        if member.member_id in self._users:
            return ExemptionReason.USER
        if not self._roles.isdisjoint(member.role_ids):
            return ExemptionReason.ROLE
        if member.is_owner:
            return ExemptionReason.OWNER
        if member.is_admin:
            return ExemptionReason.ADMIN
        return None

    def is_exempt(self, member: MemberView) -> bool:
        return self.exemption_reason(member) is not None

    @property
    def user_ids(self) -> frozenset[int]:
        return frozenset(self._users)

    @property
    def role_ids(self) -> frozenset[int]:
        return frozenset(self._roles)

    # -------------------------------------------------------------------
    # Mutations — each returns whether the set changed
    # -------------------------------------------------------------------
    def add_user(self, user_id: int) -> bool:
        if user_id in self._users:
            return False
        self._users.add(user_id)
        return True

    def remove_user(self, user_id: int) -> bool:
        if user_id not in self._users:
            return False
        self._users.discard(user_id)
        return True

    def add_role(self, role_id: int) -> bool:
        if role_id in self._roles:
            return False
        self._roles.add(role_id)
        return True

    def remove_role(self, role_id: int) -> bool:
        if role_id not in self._roles:
            return False
        self._roles.discard(role_id)
        return True
