# notenex/services/note_service.py
from datetime import datetime

from notenex.db.mongodb_utils import get_note_collection

async def update_note_reminder_at(owner_id: str, note_id: str, reminder_at: datetime, now: datetime) -> bool:
    """Mirror a rescheduled reminder onto its note. Returns False when the note is gone."""
    note_collection = get_note_collection()
    result = await note_collection.update_one(
        {"_id": note_id, "ownerId": owner_id},
        {"$set": {"reminderAt": reminder_at, "updatedAt": now}},
    )
    return result.matched_count >= 1
