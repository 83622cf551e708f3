# notenex/db/mongodb_utils.py
import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from notenex.core.config import settings

logger = logging.getLogger(__name__)

class MongoDB:
    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

db_manager = MongoDB()

async def connect_to_mongo():
    logger.info("Connecting to MongoDB at %s...", settings.MONGO_URI.split('@')[-1])
    try:
        # tz_aware so fireAt/snoozeUntil come back as UTC-aware datetimes
        db_manager.client = AsyncIOMotorClient(str(settings.MONGO_URI), tz_aware=True)
        db_manager.db = db_manager.client[str(settings.MONGO_DB_NAME)]
        await db_manager.client.admin.command('ping')
        logger.info("Successfully connected to MongoDB!")
    except Exception:
        logger.exception("Failed to connect to MongoDB")
        raise

async def close_mongo_connection():
    if db_manager.client:
        logger.info("Closing MongoDB connection...")
        db_manager.client.close()
        db_manager.client = None
        db_manager.db = None
        logger.info("MongoDB connection closed.")

def get_database() -> AsyncIOMotorDatabase:
    if db_manager.db is None:
        raise RuntimeError("MongoDB not connected. Call connect_to_mongo first during app startup.")
    return db_manager.db

# --- Collection getters ---
def get_reminder_collection() -> AsyncIOMotorCollection:
    return get_database()["reminders"]

def get_note_collection() -> AsyncIOMotorCollection:
    return get_database()["notes"]

def get_preference_collection() -> AsyncIOMotorCollection:
    return get_database()["preferences"]

def get_user_collection() -> AsyncIOMotorCollection:
    return get_database()["users"]

async def create_db_indexes():
    logger.info("Attempting to create database indexes...")
    db = get_database()
    try:
        # Reminders: one index per scanner branch, the stale-claim sweep and the owner's list
        await db["reminders"].create_index([("status", 1), ("fireAt", 1)])
        await db["reminders"].create_index([("status", 1), ("snoozeUntil", 1)])
        await db["reminders"].create_index([("status", 1), ("claimedAt", 1)])
        await db["reminders"].create_index([("ownerId", 1), ("fireAt", 1)])
        logger.info("Indexes for 'reminders' collection ensured.")

        await db["notes"].create_index("ownerId")
        logger.info("Indexes for 'notes' collection ensured.")

        logger.info("Database indexes creation process completed.")
    except Exception:
        logger.exception("Error creating database indexes")
