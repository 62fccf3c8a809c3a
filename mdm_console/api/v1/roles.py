import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status

from mdm_console.api.client import AdminApiClient
from mdm_console.api.dependencies import get_api_client, require_capability
from mdm_console.api.exceptions import MutationError
from mdm_console.editing.bulk import BulkResult, settle_all
from mdm_console.rbac.constants import CREATE, DELETE, READ, ROLES, UPDATE
from mdm_console.rbac.context import AuthContext
from mdm_console.rbac.schemas import (
    BulkFailure,
    BulkRoleUsersRequest,
    BulkRoleUsersResponse,
    Role,
    RoleCreate,
    RolePage,
    RoleUpdate,
    User,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/roles", tags=["Roles"])


def _report(result: BulkResult) -> BulkRoleUsersResponse:
    return BulkRoleUsersResponse(
        succeeded=result.succeeded,
        failed=[BulkFailure(user_id=outcome.key, error=outcome.message) for outcome in result.failed]
    )


@router.get("", response_model=RolePage)
async def list_roles(
    page: Optional[int] = None,
    limit: Optional[int] = None,
    search: Optional[str] = None,
    auth: AuthContext = Depends(require_capability(READ, ROLES)),
    client: AdminApiClient = Depends(get_api_client)
):
    """
    List roles, one page at a time.
    Requires: roles:read or ROLES_VIEW
    """
    return await client.get_roles(limit=limit, page=page, search=search)


@router.post("", response_model=Role, status_code=201)
async def create_role(
    role: RoleCreate,
    auth: AuthContext = Depends(require_capability(CREATE, ROLES)),
    client: AdminApiClient = Depends(get_api_client)
):
    """
    Create a new role.
    Requires: roles:create or ROLES_CREATE
    """
    created = await client.create_role(role)
    if created is None:
        raise MutationError("The backend did not return the created role", status_code=502)
    logger.info(f"Role {created.id} created by user {auth.user.id}")
    return created


@router.get("/{role_id}", response_model=Role)
async def get_role(
    role_id: str,
    auth: AuthContext = Depends(require_capability(READ, ROLES)),
    client: AdminApiClient = Depends(get_api_client)
):
    """
    Get role by ID with its per-group permission view.
    Requires: roles:read or ROLES_VIEW
    """
    return await client.get_role(role_id)


@router.put("/{role_id}", response_model=Role)
async def update_role(
    role_id: str,
    update: RoleUpdate,
    auth: AuthContext = Depends(require_capability(UPDATE, ROLES)),
    client: AdminApiClient = Depends(get_api_client)
):
    """
    Update role and return it as the backend now stores it.
    Requires: roles:update or ROLES_UPDATE
    """
    await client.update_role(role_id, update)
    logger.info(f"Role {role_id} updated by user {auth.user.id}")
    return await client.get_role(role_id)


@router.get("/{role_id}/users", response_model=List[User])
async def list_role_users(
    role_id: str,
    auth: AuthContext = Depends(require_capability(READ, ROLES)),
    client: AdminApiClient = Depends(get_api_client)
):
    """
    Users holding the role.
    Requires: roles:read or ROLES_VIEW
    """
    return await client.get_users_by_role(role_id)


@router.post("/{role_id}/users", response_model=BulkRoleUsersResponse)
async def add_role_users(
    role_id: str,
    request: BulkRoleUsersRequest,
    auth: AuthContext = Depends(require_capability(UPDATE, ROLES)),
    client: AdminApiClient = Depends(get_api_client)
):
    """
    Assign the role to each user. Every user is attempted; failures are
    reported per user and nothing is rolled back.
    Requires: roles:update or ROLES_UPDATE
    """
    result = await settle_all(
        request.user_ids,
        lambda user_id: client.assign_role_to_user(user_id, role_id, request.comment)
    )
    logger.info(
        f"Role {role_id}: assigned to {len(result.succeeded)} user(s), {len(result.failed)} failed"
    )
    return _report(result)


@router.delete("/{role_id}/users", response_model=BulkRoleUsersResponse)
async def remove_role_users(
    role_id: str,
    request: BulkRoleUsersRequest,
    auth: AuthContext = Depends(require_capability(UPDATE, ROLES)),
    client: AdminApiClient = Depends(get_api_client)
):
    """
    Take the role away from each user, reporting per user.
    Requires: roles:update or ROLES_UPDATE
    """
    result = await settle_all(
        request.user_ids,
        lambda user_id: client.remove_role_from_user(user_id, role_id, request.comment)
    )
    logger.info(
        f"Role {role_id}: removed from {len(result.succeeded)} user(s), {len(result.failed)} failed"
    )
    return _report(result)


@router.delete("/{role_id}", status_code=204)
async def delete_role(
    role_id: str,
    auth: AuthContext = Depends(require_capability(DELETE, ROLES)),
    client: AdminApiClient = Depends(get_api_client)
):
    """
    Delete a role.
    Requires: roles:delete or ROLES_DELETE
    """
    await client.delete_role(role_id)
    logger.info(f"Role {role_id} deleted by user {auth.user.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
