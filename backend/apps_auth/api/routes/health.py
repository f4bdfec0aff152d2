from fastapi import APIRouter, Depends
from datetime import datetime, timezone

from ..schemas import HealthResponse
from ...db.database import get_db
from ...core.config import settings
from ...services.ticket_store import RedisTicketStore, get_ticket_store

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/", response_model=HealthResponse)
async def health_check(store: RedisTicketStore = Depends(get_ticket_store)):
    """Health check endpoint"""
    try:
        db = get_db()
        # Test database connection
        await db.fetch_one("SELECT 1")
        database_status = "connected"
    except Exception:
        database_status = "disconnected"

    ticket_store_status = "connected" if await store.ping() else "disconnected"
    healthy = database_status == "connected" and ticket_store_status == "connected"
    return HealthResponse(
        status="healthy" if healthy else "unhealthy",
        service="apps-auth-api",
        version=settings.VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(),
        database=database_status,
        ticket_store=ticket_store_status
    )
