"""
Helpers over the Role -> RolePermissionGroup -> Permission aggregate.

The backend returns a role as a per-group view where every permission of a
referenced group is tagged ``granted``. Updates go back as a flat list of
granted permission ids, and the backend rebuilds the nested shape.
"""
from typing import Collection, Dict, Iterable, List, Union

from mdm_console.rbac.schemas import (
    Permission,
    PermissionGroup,
    Role,
    RolePermissionEntry,
    RolePermissionGroup,
)


def _permission_id(item: Union[Permission, str]) -> str:
    return item if isinstance(item, str) else item.id


def group_permission_ids(group: PermissionGroup) -> List[str]:
    """Ids of a group's permissions, in group order"""
    return [_permission_id(item) for item in group.permissions]


def role_permission_ids(role: Role) -> List[str]:
    """Every permission id the role's view lists, granted or not, first-seen order"""
    seen: Dict[str, None] = {}
    for group in role.permission_groups:
        for entry in group.permissions:
            if entry.permission is not None:
                seen.setdefault(entry.permission.id)
    return list(seen)


def granted_permission_ids(role: Role) -> List[str]:
    """
    Flat list of granted permission ids, the ``permissions`` body of
    ``PUT /roles/:id``. An id listed as not granted in any group is left out,
    matching how the resolver treats codes.
    """
    granted: Dict[str, None] = {}
    withheld = set()
    for group in role.permission_groups:
        for entry in group.permissions:
            if entry.permission is None:
                continue
            if entry.granted:
                granted.setdefault(entry.permission.id)
            else:
                withheld.add(entry.permission.id)
    return [pid for pid in granted if pid not in withheld]


def role_permission_view(role: Role, groups: Iterable[PermissionGroup]) -> List[RolePermissionGroup]:
    """
    Normalize the role's per-group view against the full groups.

    Each permission of a referenced group appears exactly once; permissions
    the role does not list become ``granted=False`` and entries no longer in
    the group are dropped. Groups missing from ``groups`` are kept as sent.
    """
    by_id = {group.id: group for group in groups}
    view: List[RolePermissionGroup] = []

    for role_group in role.permission_groups:
        ref = role_group.permission_group
        full = by_id.get(ref.id) if ref is not None else None
        if full is None:
            view.append(role_group.model_copy(deep=True))
            continue

        current = {
            entry.permission.id: entry
            for entry in role_group.permissions
            if entry.permission is not None
        }
        entries = []
        for item in full.permissions:
            pid = _permission_id(item)
            existing = current.get(pid)
            if isinstance(item, Permission):
                permission = item
            elif existing is not None:
                permission = existing.permission
            else:
                permission = Permission(id=pid)
            entries.append(RolePermissionEntry(
                permission=permission,
                granted=bool(existing and existing.granted)
            ))
        view.append(RolePermissionGroup(permission_group=ref, permissions=entries))

    return view


def apply_granted_ids(role: Role, permission_ids: Collection[str]) -> Role:
    """Copy of ``role`` whose granted flags follow ``permission_ids``"""
    wanted = set(permission_ids)
    updated = role.model_copy(deep=True)
    for group in updated.permission_groups:
        for entry in group.permissions:
            if entry.permission is not None:
                entry.granted = entry.permission.id in wanted
    return updated
