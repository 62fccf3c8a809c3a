from fastapi import APIRouter

from mdm_console.api.v1 import me, roles

router = APIRouter(prefix="/api/v1")

router.include_router(me.router)
router.include_router(roles.router)
