from typing import AsyncIterator, List, Optional

import httpx
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from mdm_console.api.client import AdminApiClient
from mdm_console.api.exceptions import BackendError
from mdm_console.auth.tokens import TokenStore
from mdm_console.rbac.codes import candidate_codes, page_view_codes
from mdm_console.rbac.context import AuthContext
from mdm_console.rbac.exceptions import AuthenticationRequired, PermissionDenied

bearer_scheme = HTTPBearer(auto_error=False)


def get_backend_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for backend calls; None means a real network connection"""
    return None


async def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> str:
    if credentials is None or not credentials.credentials:
        raise AuthenticationRequired()
    return credentials.credentials


async def get_api_client(
    token: str = Depends(get_bearer_token),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_backend_transport)
) -> AsyncIterator[AdminApiClient]:
    """Backend client acting with the caller's own token"""
    client = AdminApiClient(tokens=TokenStore(access_token=token), transport=transport)
    try:
        yield client
    finally:
        await client.aclose()


async def get_current_user(
    request: Request,
    client: AdminApiClient = Depends(get_api_client)
) -> AuthContext:
    """Resolve the caller's authorization context from the backend's /auth/me"""
    try:
        payload = await client.get_current_user()
    except BackendError as e:
        if e.status_code == 401:
            raise AuthenticationRequired(detail=e.message)
        raise

    auth = AuthContext.from_payload(payload)
    if not auth.is_authenticated:
        raise AuthenticationRequired(detail="Invalid authentication token")

    # Store in request state for access in handlers
    request.state.auth = auth

    return auth


class RequirePermission:
    """Dependency factory for checking a single permission code"""

    def __init__(self, permission: str):
        self.permission = permission

    async def __call__(
        self,
        auth: AuthContext = Depends(get_current_user)
    ) -> AuthContext:
        if not auth.has_permission(self.permission):
            raise PermissionDenied(
                detail=f"Permission '{self.permission}' required",
                required=[self.permission]
            )
        return auth


class RequireAnyPermission:
    """Dependency factory for checking any of multiple permission codes"""

    def __init__(self, permissions: List[str]):
        self.permissions = permissions

    async def __call__(
        self,
        auth: AuthContext = Depends(get_current_user)
    ) -> AuthContext:
        if not auth.has_any_permission(self.permissions):
            raise PermissionDenied(
                detail=f"One of permissions {self.permissions} required",
                required=self.permissions
            )
        return auth


class RequireCapability:
    """Dependency factory for an action on a resource, in either code convention"""

    def __init__(self, action: str, resource_code: str):
        self.action = action
        self.resource_code = resource_code

    async def __call__(
        self,
        auth: AuthContext = Depends(get_current_user)
    ) -> AuthContext:
        if not auth.can(self.action, self.resource_code):
            raise PermissionDenied(
                detail=f"Cannot {self.action} {self.resource_code}",
                required=candidate_codes(self.resource_code, self.action)
            )
        return auth


class RequirePageView:
    """Dependency factory for page visibility"""

    def __init__(self, page_code: str):
        self.page_code = page_code

    async def __call__(
        self,
        auth: AuthContext = Depends(get_current_user)
    ) -> AuthContext:
        if not auth.can_view_page(self.page_code):
            raise PermissionDenied(
                detail=f"Page '{self.page_code}' is not available",
                required=page_view_codes(self.page_code)
            )
        return auth


def require_permission(permission: str):
    """Factory function for permission dependency"""
    return RequirePermission(permission)


def require_any_permission(permissions: List[str]):
    """Factory function for any permission dependency"""
    return RequireAnyPermission(permissions)


def require_capability(action: str, resource_code: str):
    """Factory function for capability dependency"""
    return RequireCapability(action, resource_code)


def require_page_view(page_code: str):
    """Factory function for page visibility dependency"""
    return RequirePageView(page_code)
