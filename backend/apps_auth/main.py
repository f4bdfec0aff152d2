import logging

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager

from apps_auth.core.config import settings
from apps_auth.api.api import api_router
from apps_auth.api.errors import (
    auth_service_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    general_exception_handler
)
from apps_auth.db.database import init_db
from apps_auth.services.background_tasks import background_manager
from apps_auth.services.exceptions import AuthServiceError
from apps_auth.services.ticket_store import get_ticket_store

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await init_db()

    ticket_store = get_ticket_store()
    await ticket_store.connect()

    logger.info(f"{settings.APP_NAME} {settings.VERSION} started ({settings.ENVIRONMENT})")

    yield

    # Shutdown
    await background_manager.stop()
    await ticket_store.close()


app = FastAPI(
    title="MSPK Apps Auth API",
    description="Authentication as a service for developer apps, with cPanel single sign-on",
    version=settings.VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)

# Add exception handlers
app.add_exception_handler(AuthServiceError, auth_service_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# Include API routes
app.include_router(api_router)


@app.get("/")
async def root():
    return {
        "message": "MSPK Apps Auth API",
        "version": settings.VERSION,
        "status": "operational",
        "docs_url": "/docs"
    }
