from mdm_console.rbac.schemas import (
    LocalizedText,
    Permission,
    PermissionGroup,
    PermissionGroupRef,
    Role,
    RolePermissionEntry,
    RolePermissionGroup,
    User,
    localized,
)
from mdm_console.rbac.codes import candidate_codes, page_view_codes, parse_code
from mdm_console.rbac.resolver import (
    resolve_effective_permissions,
    has_permission,
    has_any_permission,
    has_all_permissions,
)
from mdm_console.rbac.context import AuthContext
from mdm_console.rbac.aggregate import (
    apply_granted_ids,
    granted_permission_ids,
    group_permission_ids,
    role_permission_ids,
    role_permission_view,
)
from mdm_console.rbac.exceptions import (
    PermissionDenied,
    AuthenticationRequired
)

__all__ = [
    # Schemas
    "LocalizedText",
    "Permission",
    "PermissionGroup",
    "PermissionGroupRef",
    "Role",
    "RolePermissionEntry",
    "RolePermissionGroup",
    "User",
    "localized",
    # Codes
    "candidate_codes",
    "page_view_codes",
    "parse_code",
    # Resolver
    "resolve_effective_permissions",
    "has_permission",
    "has_any_permission",
    "has_all_permissions",
    "AuthContext",
    # Aggregate
    "apply_granted_ids",
    "granted_permission_ids",
    "group_permission_ids",
    "role_permission_ids",
    "role_permission_view",
    # Exceptions
    "PermissionDenied",
    "AuthenticationRequired",
]
