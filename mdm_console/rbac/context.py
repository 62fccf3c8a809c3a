import logging
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from pydantic import BaseModel, ValidationError

from mdm_console.rbac.codes import candidate_codes, page_view_codes, parse_code
from mdm_console.rbac.constants import ACTIONS, CREATE, DELETE, READ, UPDATE
from mdm_console.rbac.resolver import (
    has_all_permissions,
    has_any_permission,
    has_permission,
    resolve_effective_permissions,
)
from mdm_console.rbac.schemas import User

logger = logging.getLogger(__name__)


class AuthContext(BaseModel):
    """
    Authorization context for one console session.

    Built once from the signed-in user and passed explicitly to whatever
    needs to gate UI or API access. Gating only: the backend re-checks
    every request.
    """
    user: Optional[User] = None
    permissions: FrozenSet[str] = frozenset()

    class Config:
        frozen = True

    @classmethod
    def anonymous(cls) -> "AuthContext":
        return cls()

    @classmethod
    def for_user(cls, user: Optional[User]) -> "AuthContext":
        return cls(user=user, permissions=resolve_effective_permissions(user))

    @classmethod
    def from_payload(cls, data: Optional[Dict[str, Any]]) -> "AuthContext":
        """Build from a raw /auth/me payload; invalid data means no access"""
        if not data:
            return cls.anonymous()

        # /auth/me answers either the bare user or {"user": {...}}
        if isinstance(data, dict) and isinstance(data.get("user"), dict):
            data = data["user"]

        try:
            user = User.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Discarding malformed user payload: {e.error_count()} error(s)")
            return cls.anonymous()

        return cls.for_user(user)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return bool(self.user and self.user.is_admin)

    def all_permissions(self) -> List[str]:
        """Effective codes, sorted; ["*"] for admins"""
        return sorted(self.permissions)

    def has_permission(self, permission: str) -> bool:
        """Check if user has a specific permission"""
        return has_permission(self.permissions, permission)

    def has_any_permission(self, permissions: Iterable[str]) -> bool:
        """Check if user has any of the specified permissions"""
        return has_any_permission(self.permissions, permissions)

    def has_all_permissions(self, permissions: Iterable[str]) -> bool:
        """Check if user has all specified permissions"""
        return has_all_permissions(self.permissions, permissions)

    # ============ Capability Queries ============

    def can(self, action: str, resource_code: str) -> bool:
        return self.has_any_permission(candidate_codes(resource_code, action))

    def can_view_page(self, page_code: str) -> bool:
        return self.has_any_permission(page_view_codes(page_code))

    def can_create(self, resource_code: str) -> bool:
        return self.can(CREATE, resource_code)

    def can_read(self, resource_code: str) -> bool:
        return self.can(READ, resource_code)

    def can_update(self, resource_code: str) -> bool:
        return self.can(UPDATE, resource_code)

    def can_delete(self, resource_code: str) -> bool:
        return self.can(DELETE, resource_code)

    def capabilities(self, resource_code: str) -> Dict[str, bool]:
        """Every CRUD action for a resource, e.g. {"create": False, "read": True, ...}"""
        return {action: self.can(action, resource_code) for action in ACTIONS}

    def resources(self) -> List[str]:
        """Resource codes named by the effective permissions, sorted"""
        found = set()
        for code in self.permissions:
            parsed = parse_code(code)
            if parsed is not None:
                found.add(parsed[0])
        return sorted(found)
