# notenex/services/user_service.py
import logging
from typing import Optional

from pymongo.errors import PyMongoError
from pydantic import ValidationError

from notenex.db.mongodb_utils import get_user_collection, get_preference_collection
from notenex.models.user_models import UserContact, UserPreference

logger = logging.getLogger(__name__)

async def get_user_contact(owner_id: str) -> UserContact:
    """
    Resolve an owner id to its auth directory record.
    Never raises: an unknown user or a failed lookup yields a null-filled record.
    """
    user_collection = get_user_collection()
    try:
        user_doc = await user_collection.find_one({"_id": owner_id})
    except PyMongoError as e:
        logger.error("Failed to load user %s: %s", owner_id, e)
        return UserContact()
    if not user_doc:
        logger.warning("User %s not found in auth directory", owner_id)
        return UserContact()
    try:
        return UserContact(**user_doc)
    except ValidationError as e:
        logger.error("Malformed user record %s: %s", owner_id, e)
        return UserContact()

async def get_user_preference(owner_id: str) -> Optional[UserPreference]:
    """Returns None when the owner never saved preferences. Store errors propagate."""
    preference_collection = get_preference_collection()
    preference_doc = await preference_collection.find_one({"_id": owner_id})
    if preference_doc:
        return UserPreference(**preference_doc)
    return None
