from typing import List, Optional, Sequence

from fastapi import HTTPException, status


class PermissionDenied(HTTPException):
    """
    The caller's context fails a capability check.

    ``required`` lists the codes that would have satisfied it (any one).
    """

    def __init__(self, detail: str = "Permission denied", required: Optional[Sequence[str]] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )
        self.required: List[str] = list(required or [])


class AuthenticationRequired(HTTPException):
    """No bearer token, or the backend did not accept it"""

    def __init__(self, detail: str = "Sign-in required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"}
        )
