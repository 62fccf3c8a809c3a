from typing import Optional

from fastapi import APIRouter, Depends, Query

from mdm_console.api.dependencies import get_current_user
from mdm_console.rbac.constants import CONSOLE_RESOURCES
from mdm_console.rbac.context import AuthContext
from mdm_console.rbac.schemas import CapabilityResponse

router = APIRouter(prefix="/me", tags=["Session"])


@router.get("/permissions", response_model=CapabilityResponse)
async def get_my_permissions(
    resources: Optional[str] = Query(None, description="Comma-separated resource codes"),
    auth: AuthContext = Depends(get_current_user)
):
    """
    Effective permissions of the caller and CRUD capabilities per resource.
    Requires: authentication only
    """
    if resources:
        codes = [code.strip() for code in resources.split(",") if code.strip()]
    else:
        # Console resources first, then anything else the caller holds codes for
        codes = list(dict.fromkeys(list(CONSOLE_RESOURCES) + auth.resources()))

    return CapabilityResponse(
        is_admin=auth.is_admin,
        permissions=auth.all_permissions(),
        capabilities={code: auth.capabilities(code) for code in codes}
    )
