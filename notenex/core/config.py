# notenex/core/config.py
import os
import json
import logging
from dotenv import load_dotenv
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

# Project root
BASE_DIR = Path(__file__).resolve().parent.parent.parent

env_path = BASE_DIR / ".env"
load_dotenv(dotenv_path=env_path)

def load_key_from_file(key_path_str: Optional[str]) -> Optional[str]:
    if not key_path_str:
        return None
    key_path = BASE_DIR / key_path_str
    if key_path.exists():
        with open(key_path, "r") as f:
            return f.read()
    else:
        logger.warning("Key file not found at %s", key_path)
        return None

class Settings:
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "NoteNex Reminder Dispatch")
    PROJECT_VERSION: str = os.getenv("PROJECT_VERSION", "1.0.0")
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"
    API_V1_STR: str = os.getenv("API_V1_STR", "/api/v1")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # MongoDB
    MONGO_URI: Optional[str] = os.getenv("MONGO_URI")
    MONGO_DB_NAME: Optional[str] = os.getenv("MONGO_DB_NAME")

    # Dispatch trigger
    REMINDER_DISPATCH_TOKEN: Optional[str] = os.getenv("REMINDER_DISPATCH_TOKEN") or None
    MAX_REMINDERS_PER_RUN: int = int(os.getenv("MAX_REMINDERS_PER_RUN", 50))
    REMINDER_CLAIM_TIMEOUT_SECONDS: int = int(os.getenv("REMINDER_CLAIM_TIMEOUT_SECONDS", 600))
    DEFAULT_TIMEZONE: str = os.getenv("DEFAULT_TIMEZONE", "UTC")

    # Resend (email)
    RESEND_API_KEY: Optional[str] = os.getenv("RESEND_API_KEY")
    RESEND_FROM_EMAIL: Optional[str] = os.getenv("RESEND_FROM_EMAIL")
    RESEND_API_URL: str = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")

    # Twilio (SMS)
    TWILIO_ACCOUNT_SID: Optional[str] = os.getenv("TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN: Optional[str] = os.getenv("TWILIO_AUTH_TOKEN")
    TWILIO_FROM_NUMBER: Optional[str] = os.getenv("TWILIO_FROM_NUMBER")
    TWILIO_API_BASE_URL: str = os.getenv("TWILIO_API_BASE_URL", "https://api.twilio.com")

    PROVIDER_TIMEOUT_SECONDS: float = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", 10))

    # JWT for the in-app reminder list. RS* verifies with a public key file, HS* with a shared secret.
    ALGORITHM: str = os.getenv("ALGORITHM", "RS256")
    JWT_PUBLIC_KEY_PATH: Optional[str] = os.getenv("JWT_PUBLIC_KEY_PATH")
    JWT_PUBLIC_KEY: Optional[str] = load_key_from_file(JWT_PUBLIC_KEY_PATH)
    JWT_SECRET_KEY: Optional[str] = os.getenv("JWT_SECRET_KEY")

    # CORS
    BACKEND_CORS_ORIGINS_STR: Optional[str] = os.getenv("BACKEND_CORS_ORIGINS")
    BACKEND_CORS_ORIGINS: List[str] = []
    if BACKEND_CORS_ORIGINS_STR:
        try:
            BACKEND_CORS_ORIGINS = json.loads(BACKEND_CORS_ORIGINS_STR)
        except json.JSONDecodeError:
            logger.warning("BACKEND_CORS_ORIGINS is not a valid JSON list: %s", BACKEND_CORS_ORIGINS_STR)

    if not MONGO_URI: raise ValueError("MONGO_URI not set")
    if not MONGO_DB_NAME: raise ValueError("MONGO_DB_NAME not set")
    if MAX_REMINDERS_PER_RUN < 1: raise ValueError("MAX_REMINDERS_PER_RUN must be positive")


settings = Settings()

if settings.DEBUG:
    logger.debug("--- Application Settings Loaded ---")
    logger.debug("PROJECT_NAME: %s", settings.PROJECT_NAME)
    logger.debug("MONGO_URI: %s", settings.MONGO_URI.split('@')[-1] if '@' in settings.MONGO_URI else settings.MONGO_URI)
    logger.debug("Dispatch token configured: %s", 'Yes' if settings.REMINDER_DISPATCH_TOKEN else 'No')
    logger.debug("Resend configured: %s", 'Yes' if settings.RESEND_API_KEY and settings.RESEND_FROM_EMAIL else 'No')
    logger.debug("Twilio configured: %s", 'Yes' if settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN else 'No')
