import logging
from typing import Optional

from mdm_console.api.client import AdminApiClient
from mdm_console.api.exceptions import BackendError
from mdm_console.rbac.context import AuthContext

logger = logging.getLogger(__name__)


class AuthSession:
    """
    Owns the signed-in user's AuthContext.

    The context is derived from /auth/me and rebuilt whenever the backend
    reports the session's permissions as stale. Until the first refresh, and
    after any failed one, the session is anonymous.
    """

    def __init__(self, client: AdminApiClient):
        self.client = client
        self._context: AuthContext = AuthContext.anonymous()
        client.refresh_handler = self.refresh

    @property
    def context(self) -> AuthContext:
        return self._context

    @property
    def is_authenticated(self) -> bool:
        return self._context.is_authenticated

    async def refresh(self) -> AuthContext:
        """Re-read /auth/me and rebuild the context"""
        self.invalidate()
        if self.client.tokens.is_expired():
            logger.info("No usable access token, session stays anonymous")
            return self._context

        try:
            payload = await self.client.get_current_user()
        except BackendError as e:
            logger.warning(f"Could not load the current user: {e.message}")
            return self._context

        self._context = AuthContext.from_payload(payload)
        logger.info(
            f"Session refreshed for {self._context.user.id if self._context.user else 'anonymous'} "
            f"with {len(self._context.permissions)} permission(s)"
        )
        return self._context

    def invalidate(self) -> None:
        self._context = AuthContext.anonymous()

    async def sign_in(self, access_token: str, refresh_token: Optional[str] = None) -> AuthContext:
        self.client.tokens.set_tokens(access_token, refresh_token)
        return await self.refresh()

    def sign_out(self) -> None:
        self.client.tokens.clear()
        self.invalidate()
