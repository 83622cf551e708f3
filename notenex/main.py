# notenex/main.py
import logging

from fastapi import FastAPI
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware

from notenex.core.config import settings
from notenex.db.mongodb_utils import connect_to_mongo, close_mongo_connection, create_db_indexes
from notenex.routers import dispatch_router, reminder_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("FastAPI application startup...")
    await connect_to_mongo()
    if settings.DEBUG: # production indexes are managed outside the app
        await create_db_indexes()

    yield
    # Shutdown
    logger.info("FastAPI application shutdown...")
    await close_mongo_connection()
    logger.info("FastAPI application shutdown complete.")

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
)

if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

@app.get("/", summary="Root Endpoint")
async def read_root():
    return {"message": f"Welcome to {settings.PROJECT_NAME} v{settings.PROJECT_VERSION}"}

app.include_router(dispatch_router.router, prefix=f"{settings.API_V1_STR}/reminders", tags=["Reminder Dispatch"])
app.include_router(reminder_router.router, prefix=f"{settings.API_V1_STR}/reminders", tags=["Reminders"])

@app.get("/health", summary="Health Check")
async def health_check():
    return {"status": "healthy"}
