"""Role checks and the two-level staff ownership tree.

SUPERADMIN owns every ADMIN, each ADMIN owns the DISPATCHERs whose
``parent_id`` points at it. Everything that gates on a role goes through
these helpers.
"""

from __future__ import annotations

from collections.abc import Iterable

from .model import Role, User

_CREATES: dict[Role, Role] = {
    Role.SUPERADMIN: Role.ADMIN,
    Role.ADMIN: Role.DISPATCHER,
}


def can_administer(user: User) -> bool:
    return user.role in (Role.SUPERADMIN, Role.ADMIN)


def can_link_groups(user: User) -> bool:
    return user.role is Role.ADMIN


def creatable_role(user: User) -> Role | None:
    return _CREATES.get(user.role)


def managed_users(actor: User, users: Iterable[User]) -> list[User]:
    if actor.role is Role.SUPERADMIN:
        return [user for user in users if user.role is Role.ADMIN]
    if actor.role is Role.ADMIN:
        return [
            user
            for user in users
            if user.role is Role.DISPATCHER and user.parent_id == actor.id
        ]
    return []


def owner_of(user: User, users: Iterable[User]) -> User | None:
    if user.parent_id is None:
        return None
    for candidate in users:
        if candidate.id == user.parent_id:
            return candidate
    return None


def manages(actor: User, target: User, users: Iterable[User]) -> bool:
    return any(user.id == target.id for user in managed_users(actor, users))
