import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

logger = logging.getLogger(__name__)


class TokenStore:
    """
    In-memory holder for the session's access and refresh tokens.

    The console never verifies signatures (the backend does); claims are
    only read to know when the access token runs out.
    """

    def __init__(self, access_token: Optional[str] = None, refresh_token: Optional[str] = None):
        self.access_token = access_token
        self.refresh_token = refresh_token

    def set_tokens(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        self.access_token = access_token
        if refresh_token is not None:
            self.refresh_token = refresh_token

    def clear(self) -> None:
        self.access_token = None
        self.refresh_token = None

    @property
    def authorization(self) -> Optional[str]:
        if not self.access_token:
            return None
        return f"Bearer {self.access_token}"

    def claims(self) -> Optional[Dict[str, Any]]:
        if not self.access_token:
            return None
        try:
            return jwt.get_unverified_claims(self.access_token)
        except JWTError as e:
            logger.warning(f"Unreadable access token: {e}")
            return None

    def expiry(self) -> Optional[datetime]:
        claims = self.claims()
        if not claims or "exp" not in claims:
            return None
        try:
            return datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
        except (TypeError, ValueError):
            return None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """No token, an unreadable one, or one past its exp all count as expired"""
        if not self.access_token:
            return True
        expires_at = self.expiry()
        if expires_at is None:
            return self.claims() is None
        return (now or datetime.now(timezone.utc)) >= expires_at
