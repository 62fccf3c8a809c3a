from typing import Any, Dict, List, Optional

from mdm_console.api.client import AdminApiClient
from mdm_console.editing.diff import FieldKind, FieldSpec
from mdm_console.editing.notifications import Notifier
from mdm_console.editing.workflow import EntityEditor
from mdm_console.rbac.aggregate import (
    apply_granted_ids,
    granted_permission_ids,
    group_permission_ids,
    role_permission_view,
)
from mdm_console.rbac.schemas import (
    LocalizedText,
    Permission,
    PermissionGroup,
    PermissionGroupUpdate,
    PermissionPage,
    PermissionUpdate,
    Role,
    RolePermissionGroup,
    RoleUpdate,
    localized,
)

NAME = FieldSpec("name", "Name", required=True)
CODE = FieldSpec("code", "Code", required=True)
DESCRIPTION = FieldSpec("description", "Description")
REQUIRED_DESCRIPTION = FieldSpec("description", "Description", required=True)
IS_ACTIVE = FieldSpec("is_active", "Status", kind=FieldKind.BOOLEAN)
PERMISSIONS = FieldSpec("permissions", "Permissions", kind=FieldKind.SET)

LOCALIZED_FIELDS = ("name", "description")


def merge_localized(original: Optional[LocalizedText], value: str, language: str) -> LocalizedText:
    """
    Put an edited string back into the shape the backend sent.

    Plain strings stay plain; a localized mapping keeps its other languages
    and only the edited one changes.
    """
    if isinstance(original, dict):
        return {**original, language: value}
    return value


class _ClientEditor(EntityEditor):
    """Editor bound to an AdminApiClient"""

    def __init__(
        self,
        client: AdminApiClient,
        entity_id: str,
        notifier: Optional[Notifier] = None,
        language: str = "en"
    ):
        super().__init__(entity_id, notifier=notifier, language=language)
        self.client = client

    def _wire_values(self, values: Dict[str, Any]) -> Dict[str, Any]:
        result = dict(values)
        for name in LOCALIZED_FIELDS:
            if name in result:
                original = getattr(self.entity, name, None)
                result[name] = merge_localized(original, result[name] or "", self.language)
        return result


class RoleEditor(_ClientEditor):
    """Role details page: name, description, status and granted permissions"""

    fields = (NAME, DESCRIPTION, IS_ACTIVE, PERMISSIONS)
    entity_label = "Role"

    async def fetch(self) -> Role:
        return await self.client.get_role(self.entity_id)

    def snapshot(self, entity: Role) -> Dict[str, Any]:
        return {
            "name": localized(entity.name, self.language),
            "description": localized(entity.description, self.language),
            "is_active": entity.is_active,
            "permissions": granted_permission_ids(entity),
        }

    async def submit(self, values: Dict[str, Any], comment: str) -> None:
        update = RoleUpdate(**self._wire_values(values), comment=comment)
        await self.client.update_role(self.entity_id, update)

    def permission_view(self, groups: Optional[List[PermissionGroup]] = None) -> List[RolePermissionGroup]:
        """Per-group permission view of the loaded role"""
        if groups is None:
            return [group.model_copy(deep=True) for group in self.entity.permission_groups]
        return role_permission_view(self.entity, groups)

    def draft_view(self) -> Role:
        """The loaded role with granted flags taken from the draft selection"""
        return apply_granted_ids(self.entity, self.selection("permissions").selected)

    def group_universe(self, group_id: str) -> List[str]:
        """Permission ids shown under one group, for select-all / clear-all"""
        for group in self.entity.permission_groups:
            if group.permission_group is not None and group.permission_group.id == group_id:
                return [entry.permission.id for entry in group.permissions if entry.permission is not None]
        return []


class PermissionEditor(_ClientEditor):
    """Permission details page"""

    fields = (NAME, CODE, REQUIRED_DESCRIPTION, IS_ACTIVE)
    entity_label = "Permission"

    async def fetch(self) -> Permission:
        return await self.client.get_permission(self.entity_id)

    def snapshot(self, entity: Permission) -> Dict[str, Any]:
        return {
            "name": localized(entity.name, self.language),
            "code": entity.code,
            "description": localized(entity.description, self.language),
            "is_active": entity.is_active,
        }

    async def submit(self, values: Dict[str, Any], comment: str) -> None:
        update = PermissionUpdate(**self._wire_values(values), comment=comment)
        await self.client.update_permission(self.entity_id, update)


class PermissionGroupEditor(_ClientEditor):
    """Permission group details page, including which permissions belong to it"""

    fields = (NAME, CODE, DESCRIPTION, IS_ACTIVE, PERMISSIONS)
    entity_label = "Permission group"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.options: Optional[PermissionPage] = None

    async def fetch(self) -> PermissionGroup:
        return await self.client.get_permission_group(self.entity_id)

    def snapshot(self, entity: PermissionGroup) -> Dict[str, Any]:
        return {
            "name": localized(entity.name, self.language),
            "code": entity.code,
            "description": localized(entity.description, self.language),
            "is_active": entity.is_active,
            "permissions": group_permission_ids(entity),
        }

    async def submit(self, values: Dict[str, Any], comment: str) -> None:
        update = PermissionGroupUpdate(**self._wire_values(values), comment=comment)
        await self.client.update_permission_group(self.entity_id, update)

    async def load_options(
        self,
        search: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None
    ) -> PermissionPage:
        """Permissions that can be picked for this group"""
        self.options = await self.client.get_permissions(limit=limit, page=page, search=search)
        return self.options

    def option_ids(self) -> List[str]:
        if self.options is None:
            return []
        return [permission.id for permission in self.options.permissions]
