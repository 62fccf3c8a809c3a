from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field

# Either a plain string or {"tr": "...", "en": "..."}
LocalizedText = Union[str, Dict[str, str]]


def localized(text: Optional[LocalizedText], language: str = "en") -> str:
    """Resolve localized text: requested language, then en, then anything."""
    if text is None:
        return ""
    if isinstance(text, str):
        return text
    for key in (language, "en"):
        if text.get(key):
            return text[key]
    return next((value for value in text.values() if value), "")


class ConsoleModel(BaseModel):
    """Base for backend payloads: camelCase / _id on the wire, snake_case here"""

    class Config:
        populate_by_name = True

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# ============ Permission Schemas ============

class Permission(ConsoleModel):
    id: str = Field(..., alias="_id")
    code: str = ""
    name: LocalizedText = ""
    description: LocalizedText = ""
    is_active: bool = Field(True, alias="isActive")


class PermissionGroupRef(ConsoleModel):
    id: str = Field(..., alias="_id")
    code: str = ""
    name: LocalizedText = ""
    description: Optional[LocalizedText] = None


class PermissionGroup(PermissionGroupRef):
    # The backend embeds permissions or sends bare ids depending on the endpoint
    permissions: List[Union[Permission, str]] = []
    is_active: bool = Field(True, alias="isActive")


# ============ Role Schemas ============

class RolePermissionEntry(ConsoleModel):
    permission: Optional[Permission] = None
    granted: bool = False


class RolePermissionGroup(ConsoleModel):
    permission_group: Optional[PermissionGroupRef] = Field(None, alias="permissionGroup")
    permissions: List[RolePermissionEntry] = []


class Role(ConsoleModel):
    id: str = Field(..., alias="_id")
    name: LocalizedText = ""
    description: LocalizedText = ""
    is_active: bool = Field(True, alias="isActive")
    permission_groups: List[RolePermissionGroup] = Field([], alias="permissionGroups")


# ============ User Schemas ============

class User(ConsoleModel):
    id: str = Field(..., alias="_id")
    username: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    is_admin: bool = Field(False, alias="isAdmin")
    role: Optional[Role] = None
    is_active: bool = Field(True, alias="isActive")


# ============ Create Payloads ============

class RoleCreate(ConsoleModel):
    name: LocalizedText
    description: LocalizedText = ""
    permissions: List[str] = []
    is_active: Optional[bool] = Field(None, alias="isActive")


class PermissionGroupCreate(ConsoleModel):
    name: LocalizedText
    code: str
    description: LocalizedText = ""
    is_active: Optional[bool] = Field(None, alias="isActive")


# ============ Update Payloads ============

class RoleUpdate(ConsoleModel):
    name: Optional[LocalizedText] = None
    description: Optional[LocalizedText] = None
    is_active: Optional[bool] = Field(None, alias="isActive")
    permissions: Optional[List[str]] = None  # flat list of granted permission ids
    comment: Optional[str] = None


class PermissionUpdate(ConsoleModel):
    name: Optional[LocalizedText] = None
    description: Optional[LocalizedText] = None
    code: Optional[str] = None
    is_active: Optional[bool] = Field(None, alias="isActive")
    comment: Optional[str] = None


class PermissionGroupUpdate(ConsoleModel):
    name: Optional[LocalizedText] = None
    description: Optional[LocalizedText] = None
    code: Optional[str] = None
    permissions: Optional[List[str]] = None
    is_active: Optional[bool] = Field(None, alias="isActive")
    comment: Optional[str] = None


class AssignRoleRequest(ConsoleModel):
    role_id: str = Field(..., alias="roleId")
    comment: Optional[str] = None


class RemoveRoleRequest(ConsoleModel):
    comment: Optional[str] = None


# ============ List Responses ============

class Pagination(ConsoleModel):
    current_page: int = Field(1, alias="currentPage")
    total_pages: int = Field(1, alias="totalPages")


class RolePage(ConsoleModel):
    roles: List[Role] = []
    total: int = 0
    pagination: Pagination = Field(default_factory=Pagination)


class PermissionPage(ConsoleModel):
    permissions: List[Permission] = []
    total: int = 0
    pagination: Pagination = Field(default_factory=Pagination)


class PermissionGroupPage(ConsoleModel):
    permission_groups: List[PermissionGroup] = Field([], alias="permissionGroups")
    total: int = 0
    pagination: Pagination = Field(default_factory=Pagination)


# ============ Console API Schemas ============

class CapabilityResponse(ConsoleModel):
    is_admin: bool = Field(False, alias="isAdmin")
    permissions: List[str] = []
    capabilities: Dict[str, Dict[str, bool]] = {}


class BulkRoleUsersRequest(ConsoleModel):
    user_ids: List[str] = Field(..., alias="userIds", min_length=1)
    comment: Optional[str] = None


class BulkFailure(ConsoleModel):
    user_id: str = Field(..., alias="userId")
    error: str


class BulkRoleUsersResponse(ConsoleModel):
    succeeded: List[str] = []
    failed: List[BulkFailure] = []
