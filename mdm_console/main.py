import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mdm_console.api.exceptions import BackendError, PermissionRefreshRequired
from mdm_console.api.v1 import router as api_v1_router
from mdm_console.config import get_settings
from mdm_console.rbac.exceptions import AuthenticationRequired, PermissionDenied

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    logger.info(f"{settings.APP_NAME} starting, backend at {settings.API_BASE_URL}")

    yield

    # Shutdown
    logger.info(f"{settings.APP_NAME} stopped")


app = FastAPI(
    title=settings.APP_NAME,
    description="Authorization core of the MDM admin console",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(PermissionDenied)
async def permission_denied_handler(request: Request, exc: PermissionDenied):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": "permission_denied", "required": exc.required}
    )


@app.exception_handler(AuthenticationRequired)
async def auth_required_handler(request: Request, exc: AuthenticationRequired):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": "authentication_required"},
        headers=exc.headers
    )


@app.exception_handler(PermissionRefreshRequired)
async def permission_refresh_handler(request: Request, exc: PermissionRefreshRequired):
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": exc.message, "error": "permission_refresh_required", "needsPermissionRefresh": True}
    )


@app.exception_handler(BackendError)
async def backend_error_handler(request: Request, exc: BackendError):
    # Client errors pass through; anything else is the backend failing us
    if exc.status_code is not None and 400 <= exc.status_code < 500:
        status_code = exc.status_code
    else:
        status_code = status.HTTP_502_BAD_GATEWAY
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "error": "backend_error"}
    )


# Include routers
app.include_router(api_v1_router)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": settings.APP_NAME}
