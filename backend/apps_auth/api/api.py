from fastapi import APIRouter

from apps_auth.api.routes import (
    health_router,
    developer_router,
    cpanel_router,
    public_router
)
from apps_auth.core.config import settings

# Create main API router
api_router = APIRouter(prefix=settings.API_V1_STR)

# Fixed-prefix routers first so they win over the "/{api_key}/..." patterns
api_router.include_router(health_router)
api_router.include_router(developer_router)
api_router.include_router(cpanel_router)
api_router.include_router(public_router)
