import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from mdm_console.api.exceptions import (
    GENERIC_FETCH_MESSAGE,
    GENERIC_MUTATION_MESSAGE,
    BackendError,
    FetchError,
    MutationError,
    PermissionRefreshRequired,
)
from mdm_console.auth.tokens import TokenStore
from mdm_console.config import get_settings
from mdm_console.rbac.schemas import (
    AssignRoleRequest,
    Permission,
    PermissionGroup,
    PermissionGroupCreate,
    PermissionGroupPage,
    PermissionGroupUpdate,
    PermissionPage,
    PermissionUpdate,
    RemoveRoleRequest,
    Role,
    RoleCreate,
    RolePage,
    RoleUpdate,
    User,
)

logger = logging.getLogger(__name__)

RefreshHandler = Callable[[], Awaitable[Any]]
ModelT = TypeVar("ModelT", bound=BaseModel)


def _error_message(body: Any, fallback: str) -> str:
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return fallback


def _unwrap(body: Any, key: str) -> Any:
    """Backend answers {"role": {...}} on some endpoints and the bare object on others"""
    if isinstance(body, dict) and key in body:
        return body[key]
    return body


class AdminApiClient:
    """
    Async client for the MDM admin backend.

    Reads raise FetchError, writes raise MutationError; both carry the
    backend's own message when it sent one. A 401 flagged with
    ``needsPermissionRefresh`` calls ``refresh_handler`` once and retries,
    or raises PermissionRefreshRequired when no handler is set.
    """

    def __init__(
        self,
        tokens: Optional[TokenStore] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        settings = get_settings()
        self.tokens = tokens or TokenStore()
        self.refresh_handler: Optional[RefreshHandler] = None
        self.http_client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout or settings.REQUEST_TIMEOUT,
            transport=transport
        )

    async def __aenter__(self) -> "AdminApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http_client.aclose()

    # ============ Transport ============

    def _headers(self) -> Dict[str, str]:
        authorization = self.tokens.authorization
        return {"Authorization": authorization} if authorization else {}

    async def _request(
        self,
        method: str,
        url: str,
        error_class: Type[BackendError] = FetchError,
        allow_refresh: bool = True,
        **kwargs
    ) -> Any:
        fallback = GENERIC_FETCH_MESSAGE if error_class is FetchError else GENERIC_MUTATION_MESSAGE

        try:
            response = await self.http_client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e}")
            raise error_class(fallback) from e

        body = self._json(response)

        if response.status_code == 401 and isinstance(body, dict) and body.get("needsPermissionRefresh"):
            if allow_refresh and self.refresh_handler is not None:
                logger.info(f"Permissions went stale during {method} {url}, refreshing")
                await self.refresh_handler()
                return await self._request(method, url, error_class, allow_refresh=False, **kwargs)
            raise PermissionRefreshRequired(_error_message(body, PermissionRefreshRequired().message), body)

        if response.status_code >= 400:
            message = _error_message(body, fallback)
            logger.warning(f"{method} {url} -> {response.status_code}: {message}")
            raise error_class(message, status_code=response.status_code, payload=body)

        return body

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    async def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if params:
            params = {key: value for key, value in params.items() if value is not None}
        return await self._request("GET", url, params=params or None)

    async def _send(self, method: str, url: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        return await self._request(method, url, MutationError, json=payload)

    @staticmethod
    def _parse(model: Type[ModelT], data: Any, body: Any) -> ModelT:
        """Validate a 2xx body; a shape the models do not accept is a failed load"""
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Unexpected {model.__name__} payload: {e.error_count()} validation error(s)")
            raise FetchError(GENERIC_FETCH_MESSAGE, payload=body) from e

    @staticmethod
    def _saved(model: Type[ModelT], data: Any) -> Optional[ModelT]:
        """Entity echoed back by a write, or None when the backend sent no usable copy"""
        if not isinstance(data, dict) or "_id" not in data:
            return None
        try:
            return model.model_validate(data)
        except ValidationError:
            logger.warning(f"Ignoring malformed {model.__name__} returned by a successful write")
            return None

    def _parse_users(self, body: Any) -> List[User]:
        items = _unwrap(body, "users")
        if items is None:
            return []
        if not isinstance(items, list):
            logger.warning(f"Expected a list of users, got {type(items).__name__}")
            raise FetchError(GENERIC_FETCH_MESSAGE, payload=body)
        return [self._parse(User, item, body) for item in items]

    # ============ Session ============

    async def get_current_user(self) -> Dict[str, Any]:
        """Raw /auth/me payload; AuthContext.from_payload validates it"""
        return await self._request("GET", "/auth/me", allow_refresh=False)

    # ============ Roles ============

    async def get_roles(
        self,
        limit: Optional[int] = None,
        page: Optional[int] = None,
        search: Optional[str] = None
    ) -> RolePage:
        body = await self._get("/roles", {
            "limit": limit or get_settings().DEFAULT_PAGE_LIMIT,
            "page": page,
            "search": search or None,
        })
        if isinstance(body, list):
            return self._parse(RolePage, {"roles": body, "total": len(body)}, body)
        return self._parse(RolePage, body or {}, body)

    async def get_role(self, role_id: str) -> Role:
        body = await self._get(f"/roles/{role_id}")
        return self._parse(Role, _unwrap(body, "role"), body)

    async def create_role(self, role: RoleCreate) -> Optional[Role]:
        body = await self._send("POST", "/roles", role.to_wire())
        return self._saved(Role, _unwrap(body, "role"))

    async def update_role(self, role_id: str, update: RoleUpdate) -> Optional[Role]:
        body = await self._send("PUT", f"/roles/{role_id}", update.to_wire())
        return self._saved(Role, _unwrap(body, "role"))

    async def delete_role(self, role_id: str) -> None:
        await self._send("DELETE", f"/roles/{role_id}")

    # ============ Permissions ============

    async def get_permissions(
        self,
        limit: Optional[int] = None,
        page: Optional[int] = None,
        search: Optional[str] = None
    ) -> PermissionPage:
        body = await self._get("/permissions", {
            "limit": limit or get_settings().DEFAULT_PAGE_LIMIT,
            "page": page,
            "search": search or None,
        })
        if isinstance(body, list):
            return self._parse(PermissionPage, {"permissions": body, "total": len(body)}, body)
        return self._parse(PermissionPage, body or {}, body)

    async def get_permission(self, permission_id: str) -> Permission:
        body = await self._get(f"/permissions/{permission_id}")
        return self._parse(Permission, _unwrap(body, "permission"), body)

    async def update_permission(self, permission_id: str, update: PermissionUpdate) -> Optional[Permission]:
        body = await self._send("PUT", f"/permissions/{permission_id}", update.to_wire())
        return self._saved(Permission, _unwrap(body, "permission"))

    # ============ Permission Groups ============

    async def get_permission_groups(
        self,
        limit: Optional[int] = None,
        page: Optional[int] = None
    ) -> PermissionGroupPage:
        body = await self._get("/permissionGroups", {
            "limit": limit or get_settings().DEFAULT_PAGE_LIMIT,
            "page": page,
        })
        if isinstance(body, list):
            return self._parse(PermissionGroupPage, {"permissionGroups": body, "total": len(body)}, body)
        return self._parse(PermissionGroupPage, body or {}, body)

    async def get_permission_group(self, group_id: str) -> PermissionGroup:
        body = await self._get(f"/permissionGroups/{group_id}")
        return self._parse(PermissionGroup, _unwrap(body, "permissionGroup"), body)

    async def create_permission_group(self, group: PermissionGroupCreate) -> Optional[PermissionGroup]:
        body = await self._send("POST", "/permissionGroups", group.to_wire())
        return self._saved(PermissionGroup, _unwrap(body, "permissionGroup"))

    async def update_permission_group(
        self,
        group_id: str,
        update: PermissionGroupUpdate
    ) -> Optional[PermissionGroup]:
        body = await self._send("PUT", f"/permissionGroups/{group_id}", update.to_wire())
        return self._saved(PermissionGroup, _unwrap(body, "permissionGroup"))

    async def delete_permission_group(self, group_id: str) -> None:
        await self._send("DELETE", f"/permissionGroups/{group_id}")

    # ============ Role Membership ============

    async def get_users_by_role(self, role_id: str) -> List[User]:
        body = await self._get(f"/users/by-role/{role_id}")
        return self._parse_users(body)

    async def get_users_not_in_role(self, role_id: str) -> List[User]:
        body = await self._get(f"/users/not-in-role/{role_id}")
        return self._parse_users(body)

    async def assign_role_to_user(self, user_id: str, role_id: str, comment: Optional[str] = None) -> None:
        payload = AssignRoleRequest(role_id=role_id, comment=comment)
        await self._send("POST", f"/users/{user_id}/assign-role", payload.to_wire())

    async def remove_role_from_user(self, user_id: str, role_id: str, comment: Optional[str] = None) -> None:
        payload = RemoveRoleRequest(comment=comment)
        await self._send("DELETE", f"/users/{user_id}/remove-role/{role_id}", payload.to_wire())
