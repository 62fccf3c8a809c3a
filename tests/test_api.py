import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from factories import FakeBackend, group_view, role_payload, user_payload
from mdm_console.api.dependencies import (
    get_backend_transport,
    require_any_permission,
    require_page_view,
    require_permission,
)
from mdm_console.main import app

BACKEND = "/api"


def me_with(*codes, is_admin=False):
    groups = [group_view("g-1", "roles", [(f"p-{i}", code, True) for i, code in enumerate(codes)])]
    return user_payload(role=role_payload(groups=groups), is_admin=is_admin)


@pytest.fixture
def backend():
    backend = FakeBackend()
    app.dependency_overrides[get_backend_transport] = lambda: backend.transport
    yield backend
    app.dependency_overrides.clear()


@pytest.fixture
def api():
    return TestClient(app)


@pytest.fixture
def headers(token):
    return {"Authorization": f"Bearer {token}"}


class TestSession:

    def test_health(self, api):
        response = api.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "MDM Admin Console"}

    def test_missing_token(self, api, backend):
        response = api.get("/api/v1/me/permissions")

        assert response.status_code == 401
        assert response.json()["error"] == "authentication_required"
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert backend.requests == []

    def test_backend_rejects_token(self, api, backend, headers):
        backend.on("GET", f"{BACKEND}/auth/me", status_code=401, body={"message": "Token expired"})

        response = api.get("/api/v1/me/permissions", headers=headers)

        assert response.status_code == 401
        assert response.json() == {"detail": "Token expired", "error": "authentication_required"}

    def test_capabilities(self, api, backend, headers, token):
        backend.on("GET", f"{BACKEND}/auth/me", body=me_with("ROLES_VIEW", "roles:update"))

        response = api.get("/api/v1/me/permissions", params={"resources": "roles, items"}, headers=headers)

        assert response.status_code == 200
        assert response.json() == {
            "isAdmin": False,
            "permissions": ["ROLES_VIEW", "roles:update"],
            "capabilities": {
                "roles": {"create": False, "read": True, "update": True, "delete": False},
                "items": {"create": False, "read": False, "update": False, "delete": False},
            },
        }
        # Caller's token is forwarded to the backend
        assert backend.requests[0].headers["Authorization"] == f"Bearer {token}"

    def test_admin_capabilities(self, api, backend, headers):
        backend.on("GET", f"{BACKEND}/auth/me", body=user_payload(is_admin=True))

        body = api.get("/api/v1/me/permissions", headers=headers).json()

        assert body["isAdmin"] is True
        assert body["permissions"] == ["*"]
        assert set(body["capabilities"]) == {"roles", "permissions", "permissionGroups", "users"}
        assert all(all(caps.values()) for caps in body["capabilities"].values())


class TestRoles:
    """Role endpoints gated by capability"""

    def test_get_role_requires_read(self, api, backend, headers):
        backend.on("GET", f"{BACKEND}/auth/me", body=me_with("USERS_VIEW"))

        response = api.get("/api/v1/roles/r-1", headers=headers)

        assert response.status_code == 403
        assert response.json() == {
            "detail": "Cannot read roles",
            "error": "permission_denied",
            "required": ["roles:read", "ROLES_VIEW"],
        }

    def test_get_role(self, api, backend, headers):
        backend.on("GET", f"{BACKEND}/auth/me", body=me_with("roles:read"))
        backend.on("GET", f"{BACKEND}/roles/r-1", body={"role": role_payload(name="Operators")})

        response = api.get("/api/v1/roles/r-1", headers=headers)

        assert response.status_code == 200
        assert response.json()["_id"] == "r-1"
        assert response.json()["name"] == "Operators"

    def test_backend_not_found_passes_through(self, api, backend, headers):
        backend.on("GET", f"{BACKEND}/auth/me", body=me_with("ROLES_VIEW"))
        backend.on("GET", f"{BACKEND}/roles/r-9", status_code=404, body={"message": "Role not found"})

        response = api.get("/api/v1/roles/r-9", headers=headers)

        assert response.status_code == 404
        assert response.json() == {"detail": "Role not found", "error": "backend_error"}

    def test_backend_failure_is_bad_gateway(self, api, backend, headers):
        backend.on("GET", f"{BACKEND}/auth/me", body=me_with("ROLES_VIEW"))
        backend.on("GET", f"{BACKEND}/roles/r-1", status_code=503)

        response = api.get("/api/v1/roles/r-1", headers=headers)

        assert response.status_code == 502

    def test_update_role(self, api, backend, headers):
        backend.on("GET", f"{BACKEND}/auth/me", body=me_with("ROLES_UPDATE"))
        backend.on("PUT", f"{BACKEND}/roles/r-1", body={"message": "ok"})
        backend.on("GET", f"{BACKEND}/roles/r-1", body=role_payload(is_active=False))

        response = api.put(
            "/api/v1/roles/r-1",
            json={"isActive": False, "permissions": ["p-1"], "comment": ""},
            headers=headers
        )

        assert response.status_code == 200
        assert response.json()["isActive"] is False
        assert backend.sent_json("PUT", f"{BACKEND}/roles/r-1") == [
            {"isActive": False, "permissions": ["p-1"], "comment": ""}
        ]

    def test_update_role_requires_update(self, api, backend, headers):
        backend.on("GET", f"{BACKEND}/auth/me", body=me_with("ROLES_VIEW"))

        response = api.put("/api/v1/roles/r-1", json={"name": "x"}, headers=headers)

        assert response.status_code == 403
        assert backend.sent("PUT", f"{BACKEND}/roles/r-1") == []

    def test_stale_permissions_surface(self, api, backend, headers):
        backend.on("GET", f"{BACKEND}/auth/me", body=me_with("ROLES_VIEW"))
        backend.on("GET", f"{BACKEND}/roles/r-1", status_code=401, body={"needsPermissionRefresh": True})

        response = api.get("/api/v1/roles/r-1", headers=headers)

        assert response.status_code == 401
        assert response.json()["error"] == "permission_refresh_required"
        assert response.json()["needsPermissionRefresh"] is True


    def test_list_roles(self, api, backend, headers):
        backend.on("GET", f"{BACKEND}/auth/me", body=me_with("ROLES_VIEW"))
        backend.on("GET", f"{BACKEND}/roles", body={"roles": [role_payload("r-1")], "total": 1})

        response = api.get("/api/v1/roles?search=oper", headers=headers)

        assert response.status_code == 200
        assert [role["_id"] for role in response.json()["roles"]] == ["r-1"]
        assert backend.sent("GET", f"{BACKEND}/roles")[0].url.params["search"] == "oper"

    def test_create_role(self, api, backend, headers):
        backend.on("GET", f"{BACKEND}/auth/me", body=me_with("roles:create"))
        backend.on("POST", f"{BACKEND}/roles", status_code=201, body={"role": role_payload("r-9", name="Auditors")})

        response = api.post("/api/v1/roles", json={"name": "Auditors", "permissions": ["p-1"]}, headers=headers)

        assert response.status_code == 201
        assert response.json()["_id"] == "r-9"
        assert backend.sent_json("POST", f"{BACKEND}/roles") == [
            {"name": "Auditors", "description": "", "permissions": ["p-1"]}
        ]

    def test_create_role_requires_create(self, api, backend, headers):
        backend.on("GET", f"{BACKEND}/auth/me", body=me_with("ROLES_VIEW", "ROLES_UPDATE"))

        response = api.post("/api/v1/roles", json={"name": "Auditors"}, headers=headers)

        assert response.status_code == 403
        assert response.json()["required"] == ["roles:create", "ROLES_CREATE"]
        assert backend.sent("POST", f"{BACKEND}/roles") == []

    def test_delete_role(self, api, backend, headers):
        backend.on("GET", f"{BACKEND}/auth/me", body=me_with("ROLES_DELETE"))
        backend.on("DELETE", f"{BACKEND}/roles/r-1", status_code=204)

        response = api.delete("/api/v1/roles/r-1", headers=headers)

        assert response.status_code == 204
        assert len(backend.sent("DELETE", f"{BACKEND}/roles/r-1")) == 1

    def test_delete_role_requires_delete(self, api, backend, headers):
        backend.on("GET", f"{BACKEND}/auth/me", body=me_with("ROLES_UPDATE"))

        response = api.delete("/api/v1/roles/r-1", headers=headers)

        assert response.status_code == 403
        assert backend.sent("DELETE", f"{BACKEND}/roles/r-1") == []

class TestRoleUsers:
    """Bulk membership endpoints"""

    def serve(self, backend, failing=()):
        backend.on("GET", f"{BACKEND}/auth/me", body=me_with("ROLES_VIEW", "ROLES_UPDATE"))
        for uid in ("u1", "u2", "u3"):
            status_code = 409 if uid in failing else 200
            body = {"message": f"User {uid} already has a role"} if uid in failing else {}
            backend.on("POST", f"{BACKEND}/users/{uid}/assign-role", status_code=status_code, body=body)
            backend.on("DELETE", f"{BACKEND}/users/{uid}/remove-role/r-1", status_code=status_code, body=body)

    def test_list_members(self, api, backend, headers):
        backend.on("GET", f"{BACKEND}/auth/me", body=me_with("ROLES_VIEW"))
        backend.on("GET", f"{BACKEND}/users/by-role/r-1", body={"users": [user_payload("u1")]})

        response = api.get("/api/v1/roles/r-1/users", headers=headers)

        assert [u["_id"] for u in response.json()] == ["u1"]

    def test_add_users_partial_failure(self, api, backend, headers):
        self.serve(backend, failing={"u2"})

        response = api.post(
            "/api/v1/roles/r-1/users",
            json={"userIds": ["u1", "u2", "u3"], "comment": "new hires"},
            headers=headers
        )

        assert response.status_code == 200
        assert response.json() == {
            "succeeded": ["u1", "u3"],
            "failed": [{"userId": "u2", "error": "User u2 already has a role"}],
        }
        assert backend.sent_json("POST", f"{BACKEND}/users/u3/assign-role") == [
            {"roleId": "r-1", "comment": "new hires"}
        ]

    def test_remove_users(self, api, backend, headers):
        self.serve(backend)

        response = api.request("DELETE", "/api/v1/roles/r-1/users", json={"userIds": ["u1"]}, headers=headers)

        assert response.json() == {"succeeded": ["u1"], "failed": []}
        assert len(backend.sent("DELETE", f"{BACKEND}/users/u1/remove-role/r-1")) == 1

    def test_empty_user_list_rejected(self, api, backend, headers):
        self.serve(backend)

        response = api.post("/api/v1/roles/r-1/users", json={"userIds": []}, headers=headers)

        assert response.status_code == 422

    def test_requires_update(self, api, backend, headers):
        backend.on("GET", f"{BACKEND}/auth/me", body=me_with("ROLES_VIEW"))

        response = api.post("/api/v1/roles/r-1/users", json={"userIds": ["u1"]}, headers=headers)

        assert response.status_code == 403


class TestPermissionDependencies:
    """Dependency factories on a bare app"""

    @pytest.fixture
    def guarded(self, backend):
        guarded = FastAPI()
        guarded.dependency_overrides[get_backend_transport] = lambda: backend.transport

        @guarded.get("/code")
        async def by_code(auth=Depends(require_permission("DEVICES_WIPE"))):
            return {"ok": True}

        @guarded.get("/any")
        async def by_any(auth=Depends(require_any_permission(["DEVICES_WIPE", "devices:update"]))):
            return {"ok": True}

        @guarded.get("/page")
        async def by_page(auth=Depends(require_page_view("devices"))):
            return {"ok": True}

        return TestClient(guarded)

    def test_single_code(self, guarded, backend, headers):
        backend.on("GET", f"{BACKEND}/auth/me", body=me_with("devices:update"))

        assert guarded.get("/code", headers=headers).status_code == 403
        assert guarded.get("/any", headers=headers).status_code == 200

    def test_page_view(self, guarded, backend, headers):
        backend.on("GET", f"{BACKEND}/auth/me", body=me_with("devices_VIEW"))

        assert guarded.get("/page", headers=headers).status_code == 200

    def test_page_view_denied(self, guarded, backend, headers):
        backend.on("GET", f"{BACKEND}/auth/me", body=me_with("DEVICES_VIEW"))

        assert guarded.get("/page", headers=headers).status_code == 403


class TestDefaultResources:

    def test_resources_from_held_codes(self, api, backend, headers):
        backend.on("GET", f"{BACKEND}/auth/me", body=me_with("DEVICES_VIEW", "roles:update"))

        body = api.get("/api/v1/me/permissions", headers=headers).json()

        assert list(body["capabilities"]) == ["roles", "permissions", "permissionGroups", "users", "devices"]
        assert body["capabilities"]["devices"]["read"] is True
