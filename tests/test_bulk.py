import asyncio
import json

import httpx
import pytest

from factories import user_payload
from mdm_console.api.exceptions import MutationError
from mdm_console.editing.bulk import RoleMembershipEditor, settle_all


def serve_membership(backend, members, others, failing=()):
    """Fake user-role endpoints; ``failing`` user ids are rejected by the backend"""
    state = {"members": list(members), "others": list(others)}

    def by_role(request):
        return httpx.Response(200, json={"users": [user_payload(uid) for uid in state["members"]]})

    def not_in_role(request):
        return httpx.Response(200, json=[user_payload(uid) for uid in state["others"]])

    backend.on("GET", "/users/by-role/r-1", handler=by_role)
    backend.on("GET", "/users/not-in-role/r-1", handler=not_in_role)

    for uid in set(members) | set(others):
        def assign(request, uid=uid):
            if uid in failing:
                return httpx.Response(400, json={"message": f"User {uid} is locked"})
            state["others"].remove(uid)
            state["members"].append(uid)
            return httpx.Response(200, json={"message": "Role assigned"})

        def remove(request, uid=uid):
            if uid in failing:
                return httpx.Response(400, json={"message": f"User {uid} is locked"})
            state["members"].remove(uid)
            state["others"].append(uid)
            return httpx.Response(200, json={"message": "Role removed"})

        backend.on("POST", f"/users/{uid}/assign-role", handler=assign)
        backend.on("DELETE", f"/users/{uid}/remove-role/r-1", handler=remove)

    return state


class TestSettleAll:
    """Per-item fan-out"""

    @pytest.mark.asyncio
    async def test_every_item_settles(self):
        calls = []

        async def operation(key):
            calls.append(key)
            if key == "b":
                raise MutationError("nope")
            return key

        result = await settle_all(["a", "b", "c", "a"], operation)

        assert calls == ["a", "b", "c"]
        assert result.succeeded == ["a", "c"]
        assert [o.key for o in result.failed] == ["b"]
        assert result.failed[0].message == "nope"
        assert result.partial is True
        assert result.all_succeeded is False

    @pytest.mark.asyncio
    async def test_unexpected_errors_get_generic_message(self):
        async def operation(key):
            raise RuntimeError("socket closed")

        result = await settle_all(["a"], operation)

        assert result.failed[0].message == "The change could not be saved"

    @pytest.mark.asyncio
    async def test_empty(self):
        async def operation(key):
            raise AssertionError("not called")

        result = await settle_all([], operation)

        assert result.outcomes == []
        assert result.all_succeeded is True
        assert result.partial is False

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        async def operation(key):
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await settle_all(["a"], operation)


class TestRoleMembershipEditor:
    """Users of a role"""

    @pytest.mark.asyncio
    async def test_load(self, backend, client):
        serve_membership(backend, members=["u1"], others=["u2", "u3"])
        editor = RoleMembershipEditor(client, "r-1")

        await editor.load()

        assert editor.member_ids == ["u1"]
        assert editor.non_member_ids == ["u2", "u3"]

    @pytest.mark.asyncio
    async def test_add_selected_partial_failure(self, backend, client):
        """Failed users stay selected; the rest are assigned"""
        serve_membership(backend, members=["u1"], others=["u2", "u3", "u4"], failing={"u3"})
        editor = RoleMembershipEditor(client, "r-1")
        await editor.load()
        editor.candidates.select_all(editor.non_member_ids)

        result = await editor.add_selected(comment="onboarding")

        assert sorted(result.succeeded) == ["u2", "u4"]
        assert [(o.key, o.message) for o in result.failed] == [("u3", "User u3 is locked")]
        assert editor.candidates.selected == ["u3"]
        assert sorted(editor.member_ids) == ["u1", "u2", "u4"]
        assert backend.sent_json("POST", "/users/u2/assign-role") == [{"roleId": "r-1", "comment": "onboarding"}]
        assert editor.is_saving is False

    @pytest.mark.asyncio
    async def test_remove_users(self, backend, client):
        serve_membership(backend, members=["u1", "u2"], others=[])
        editor = RoleMembershipEditor(client, "r-1")
        await editor.load()

        result = await editor.remove_users(["u2"], comment="left the team")

        assert result.all_succeeded is True
        assert editor.member_ids == ["u1"]
        sent = backend.sent("DELETE", "/users/u2/remove-role/r-1")[0]
        assert json.loads(sent.content) == {"comment": "left the team"}

    @pytest.mark.asyncio
    async def test_apply_reconciles(self, backend, client):
        serve_membership(backend, members=["u1", "u2"], others=["u3"])
        editor = RoleMembershipEditor(client, "r-1")
        await editor.load()

        added, removed = await editor.apply(["u1", "u3"])

        assert added.succeeded == ["u3"]
        assert removed.succeeded == ["u2"]
        assert sorted(editor.member_ids) == ["u1", "u3"]
        assert backend.sent("POST", "/users/u1/assign-role") == []

    @pytest.mark.asyncio
    async def test_reload_failure_keeps_outcomes(self, backend, client):
        """Assignments already made are reported even when the member list cannot be refreshed"""
        serve_membership(backend, members=["u1"], others=["u2"])
        editor = RoleMembershipEditor(client, "r-1")
        await editor.load()

        def broken(request):
            return httpx.Response(500, json={"message": "Database unavailable"})

        backend.on("GET", "/users/by-role/r-1", handler=broken)
        editor.candidates.toggle("u2")

        result = await editor.add_selected()

        assert result.succeeded == ["u2"]
        assert len(backend.sent("POST", "/users/u2/assign-role")) == 1
        assert editor.candidates.selected == []
        assert editor.load_error == "Database unavailable"
        assert editor.member_ids == ["u1"]
        assert editor.is_saving is False

    @pytest.mark.asyncio
    async def test_successful_reload_clears_load_error(self, backend, client):
        serve_membership(backend, members=["u1"], others=[])
        editor = RoleMembershipEditor(client, "r-1")
        editor.load_error = "Database unavailable"

        await editor.remove_users(["u1"])

        assert editor.load_error is None
        assert editor.member_ids == []
