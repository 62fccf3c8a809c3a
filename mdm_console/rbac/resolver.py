from typing import AbstractSet, FrozenSet, Iterable, Optional

from mdm_console.rbac.constants import WILDCARD
from mdm_console.rbac.schemas import User

ADMIN_PERMISSIONS: FrozenSet[str] = frozenset({WILDCARD})


def resolve_effective_permissions(user: Optional[User]) -> FrozenSet[str]:
    """
    Collect every granted permission code reachable from the user's role.

    Admins resolve to the wildcard set. Missing user, role or groups resolve
    to the empty set. An entry only contributes when it is granted and
    carries a code. Groups are not OR-ed together: a code listed as not
    granted in any group of the role stays out of the set.
    """
    if user is None:
        return frozenset()

    if user.is_admin:
        return ADMIN_PERMISSIONS

    role = user.role
    if role is None or not role.permission_groups:
        return frozenset()

    granted, withheld = set(), set()
    for group in role.permission_groups:
        for entry in group.permissions or ():
            if entry.permission is None or not entry.permission.code:
                continue
            if entry.granted is True:
                granted.add(entry.permission.code)
            else:
                withheld.add(entry.permission.code)

    return frozenset(granted - withheld)


def has_permission(effective: AbstractSet[str], code: str) -> bool:
    """Check a single code; the wildcard grants everything"""
    return WILDCARD in effective or code in effective


def has_any_permission(effective: AbstractSet[str], codes: Iterable[str]) -> bool:
    """OR over codes"""
    return any(has_permission(effective, code) for code in codes)


def has_all_permissions(effective: AbstractSet[str], codes: Iterable[str]) -> bool:
    """AND over codes; an empty list is vacuously satisfied"""
    return all(has_permission(effective, code) for code in codes)
