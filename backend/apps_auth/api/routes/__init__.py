from .public import router as public_router
from .developer import router as developer_router
from .cpanel import router as cpanel_router
from .health import router as health_router

__all__ = [
    "public_router",
    "developer_router",
    "cpanel_router",
    "health_router"
]
