"""
Bulk role membership changes.

Each user is assigned or removed with its own request. The requests run
concurrently and every one of them is allowed to finish; the caller gets
one outcome per user instead of a single pass/fail.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Tuple

from mdm_console.api.client import AdminApiClient
from mdm_console.api.exceptions import GENERIC_FETCH_MESSAGE, GENERIC_MUTATION_MESSAGE, BackendError
from mdm_console.editing.exceptions import InvalidTransition
from mdm_console.editing.selection import SelectionSet, reconcile_members
from mdm_console.rbac.schemas import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome:
    key: str
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> Optional[str]:
        if self.error is None:
            return None
        if isinstance(self.error, BackendError):
            return self.error.message or GENERIC_MUTATION_MESSAGE
        return GENERIC_MUTATION_MESSAGE


@dataclass
class BulkResult:
    outcomes: List[Outcome] = field(default_factory=list)

    @property
    def succeeded(self) -> List[str]:
        return [outcome.key for outcome in self.outcomes if outcome.ok]

    @property
    def failed(self) -> List[Outcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    @property
    def partial(self) -> bool:
        return bool(self.succeeded) and bool(self.failed)


async def settle_all(keys: Iterable[str], operation: Callable[[str], Awaitable[Any]]) -> BulkResult:
    """Run ``operation`` for every key concurrently and record each outcome"""
    unique = list(dict.fromkeys(keys))
    results = await asyncio.gather(*(operation(key) for key in unique), return_exceptions=True)

    outcomes = []
    for key, result in zip(unique, results):
        if isinstance(result, Exception):
            outcomes.append(Outcome(key, result))
        elif isinstance(result, BaseException):
            raise result
        else:
            outcomes.append(Outcome(key))
    return BulkResult(outcomes)


class RoleMembershipEditor:
    """
    Users of one role: who has it, who could get it, and bulk add/remove.

    ``candidates`` holds the ids picked from users without the role; after an
    add, the ids that failed stay selected so the operator can retry them.
    """

    def __init__(self, client: AdminApiClient, role_id: str):
        self.client = client
        self.role_id = role_id
        self.members: List[User] = []
        self.non_members: List[User] = []
        self.candidates = SelectionSet()
        self.is_saving = False
        self.load_error: Optional[str] = None

    @property
    def member_ids(self) -> List[str]:
        return [user.id for user in self.members]

    @property
    def non_member_ids(self) -> List[str]:
        return [user.id for user in self.non_members]

    async def load(self) -> None:
        members, non_members = await asyncio.gather(
            self.client.get_users_by_role(self.role_id),
            self.client.get_users_not_in_role(self.role_id)
        )
        self.members = members
        self.non_members = non_members
        known = set(self.non_member_ids)
        self.candidates.reset(item for item in self.candidates if item in known)

    async def _reload(self) -> bool:
        """Refresh both lists after a change; a failure keeps the stale lists"""
        try:
            await self.load()
        except BackendError as e:
            logger.warning(f"Role {self.role_id}: reloading members failed after a change: {e.message}")
            self.load_error = e.message or GENERIC_FETCH_MESSAGE
            return False
        self.load_error = None
        return True

    def _begin(self, action: str) -> None:
        if self.is_saving:
            raise InvalidTransition("saving", action)
        self.is_saving = True

    async def _assign(self, user_ids: Iterable[str], comment: Optional[str]) -> BulkResult:
        result = await settle_all(
            user_ids,
            lambda user_id: self.client.assign_role_to_user(user_id, self.role_id, comment)
        )
        self._log("assign", result)
        return result

    async def _remove(self, user_ids: Iterable[str], comment: Optional[str]) -> BulkResult:
        result = await settle_all(
            user_ids,
            lambda user_id: self.client.remove_role_from_user(user_id, self.role_id, comment)
        )
        self._log("remove", result)
        return result

    def _log(self, action: str, result: BulkResult) -> None:
        if result.all_succeeded:
            logger.info(f"Role {self.role_id}: {action} succeeded for {len(result.succeeded)} user(s)")
            return
        logger.warning(
            f"Role {self.role_id}: {action} failed for {len(result.failed)} of "
            f"{len(result.outcomes)} user(s): {', '.join(o.key for o in result.failed)}"
        )

    async def add_users(self, user_ids: Iterable[str], comment: Optional[str] = None) -> BulkResult:
        self._begin("add users")
        try:
            result = await self._assign(user_ids, comment)
        finally:
            self.is_saving = False
        await self._reload()
        return result

    async def add_selected(self, comment: Optional[str] = None) -> BulkResult:
        """Assign the role to every selected candidate; failures stay selected"""
        result = await self.add_users(self.candidates.selected, comment)
        self.candidates.reset(outcome.key for outcome in result.failed)
        return result

    async def remove_users(self, user_ids: Iterable[str], comment: Optional[str] = None) -> BulkResult:
        self._begin("remove users")
        try:
            result = await self._remove(user_ids, comment)
        finally:
            self.is_saving = False
        await self._reload()
        return result

    async def apply(
        self,
        desired_member_ids: Iterable[str],
        comment: Optional[str] = None
    ) -> Tuple[BulkResult, BulkResult]:
        """Bring the role's members to ``desired_member_ids``; returns (added, removed)"""
        to_add, to_remove = reconcile_members(self.member_ids, desired_member_ids)
        self._begin("apply membership")
        try:
            added = await self._assign(to_add, comment)
            removed = await self._remove(to_remove, comment)
        finally:
            self.is_saving = False
        await self._reload()
        return added, removed
