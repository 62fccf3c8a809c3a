from typing import Any, Optional

GENERIC_FETCH_MESSAGE = "Could not load data from the server"
GENERIC_MUTATION_MESSAGE = "The change could not be saved"


class BackendError(Exception):
    """A backend request failed; ``message`` is the backend's text when it sent one"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Any = None
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


class FetchError(BackendError):
    """Loading an entity or list failed (network, 4xx, 5xx)"""


class MutationError(BackendError):
    """The backend rejected a create/update/delete"""


class PermissionRefreshRequired(BackendError):
    """401 carrying needsPermissionRefresh: the session's permissions are stale"""

    def __init__(self, message: str = "Permissions changed, refresh required", payload: Any = None):
        super().__init__(message, status_code=401, payload=payload)
