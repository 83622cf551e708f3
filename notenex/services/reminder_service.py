# notenex/services/reminder_service.py
"""
Reminder reads and writes used by dispatch.

A dispatch run scans due reminders, claims each one by moving it to
`dispatching` under the run's token, and finally commits the post-dispatch
state only while that claim still holds. Claims left behind by a crashed run
are released once they are older than REMINDER_CLAIM_TIMEOUT_SECONDS.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from notenex.core.config import settings
from notenex.db.mongodb_utils import get_reminder_collection
from notenex.models.common_models import utc_now
from notenex.models.reminder_models import (
    DISPATCHABLE_STATUSES,
    UPCOMING_STATUSES,
    ReminderInDB,
    ReminderPublic,
    ReminderStatus,
)

logger = logging.getLogger(__name__)

CLAIM_FIELDS = ("claimToken", "claimedAt", "claimedFromStatus")


class ReminderScanError(RuntimeError):
    """The due-reminder queries failed; nothing in this run can be trusted."""


def due_filter(status: ReminderStatus, now: datetime) -> Dict[str, Any]:
    # Effective due time is snoozeUntil when set, otherwise fireAt
    return {
        "status": status.value,
        "$or": [
            {"snoozeUntil": {"$lte": now}},
            {"snoozeUntil": None, "fireAt": {"$lte": now}},
        ],
    }


async def _find_due(status: ReminderStatus, now: datetime, limit: int) -> List[Dict[str, Any]]:
    reminder_collection = get_reminder_collection()
    cursor = reminder_collection.find(due_filter(status, now)).limit(limit)
    return [doc async for doc in cursor]


async def fetch_due_reminders(now: datetime, limit: Optional[int] = None) -> List[ReminderInDB]:
    """
    Due reminders across every owner: up to `limit` scheduled plus up to
    `limit` snoozed, merged without duplicates.
    """
    if limit is None:
        limit = settings.MAX_REMINDERS_PER_RUN
    if limit < 1: # Mongo reads limit(0) as "no limit"
        raise ValueError(f"Batch limit must be positive, got {limit}")
    try:
        docs = []
        for status in DISPATCHABLE_STATUSES:
            docs.extend(await _find_due(status, now, limit))
    except PyMongoError as e:
        raise ReminderScanError(f"Failed to query due reminders: {e}") from e

    due: Dict[str, ReminderInDB] = {}
    for doc in docs:
        try:
            reminder = ReminderInDB(**doc)
        except ValidationError as e:
            logger.warning("Reminder %s is malformed, skipping: %s", doc.get("_id"), e)
            continue
        if not reminder.ownerId:
            logger.warning("Reminder %s missing ownerId, skipping.", reminder.id)
            continue
        due[reminder.dedup_key] = reminder
    return list(due.values())


async def claim_reminder(reminder: ReminderInDB, run_id: str, now: datetime) -> bool:
    """
    Atomically move a scanned reminder to `dispatching` for this run.
    Fails when another run got there first or the reminder changed since the scan.
    `now` is the run's reference time for the due check; claimedAt records
    when the claim was actually taken, which is what the stale-claim sweep ages.
    """
    reminder_collection = get_reminder_collection()
    claim_query = {"_id": reminder.id, "ownerId": reminder.ownerId, **due_filter(reminder.status, now)}
    claimed = await reminder_collection.find_one_and_update(
        claim_query,
        {"$set": {
            "status": ReminderStatus.DISPATCHING.value,
            "claimToken": run_id,
            "claimedAt": utc_now(),
            "claimedFromStatus": reminder.status.value,
        }},
        return_document=ReturnDocument.AFTER,
    )
    return claimed is not None


async def release_claim(reminder: ReminderInDB, run_id: str, now: datetime) -> bool:
    """Hand a claimed reminder back in its scanned status so a later run retries it."""
    reminder_collection = get_reminder_collection()
    result = await reminder_collection.update_one(
        {"_id": reminder.id, "claimToken": run_id},
        {
            "$set": {"status": reminder.status.value, "updatedAt": now},
            "$unset": {field: "" for field in CLAIM_FIELDS},
        },
    )
    return result.matched_count == 1


async def release_stale_claims(now: datetime, timeout_seconds: Optional[int] = None) -> int:
    if timeout_seconds is None:
        timeout_seconds = settings.REMINDER_CLAIM_TIMEOUT_SECONDS
    reminder_collection = get_reminder_collection()
    cutoff = now - timedelta(seconds=timeout_seconds)
    result = await reminder_collection.update_many(
        {"status": ReminderStatus.DISPATCHING.value, "claimedAt": {"$lte": cutoff}},
        [
            {"$set": {
                "status": {"$ifNull": ["$claimedFromStatus", ReminderStatus.SCHEDULED.value]},
                "updatedAt": now,
            }},
            {"$unset": list(CLAIM_FIELDS)},
        ],
    )
    if result.modified_count:
        logger.warning("Released %d stale reminder claim(s) older than %s", result.modified_count, cutoff.isoformat())
    return result.modified_count


async def mark_dispatched(
    reminder: ReminderInDB,
    run_id: str,
    now: datetime,
    next_fire_at: Optional[datetime],
    error: Optional[str] = None,
) -> bool:
    """
    Commit the post-dispatch state: rescheduled when `next_fire_at` is given,
    otherwise `sent` with fireAt left as it was.
    """
    reminder_collection = get_reminder_collection()
    update_set: Dict[str, Any] = {
        "lastSentAt": now,
        "updatedAt": now,
        "snoozeUntil": None,
    }
    if next_fire_at:
        update_set["fireAt"] = next_fire_at
        update_set["status"] = ReminderStatus.SCHEDULED.value
    else:
        update_set["status"] = ReminderStatus.SENT.value

    update_unset = {field: "" for field in CLAIM_FIELDS}
    if error:
        update_set["lastError"] = error
    else:
        update_unset["lastError"] = ""

    result = await reminder_collection.update_one(
        {"_id": reminder.id, "claimToken": run_id, "status": ReminderStatus.DISPATCHING.value},
        {"$set": update_set, "$unset": update_unset},
    )
    if result.matched_count != 1:
        logger.warning("Reminder %s lost its claim before the final write; state not committed", reminder.id)
        return False
    return True


async def get_upcoming_reminders_for_owner(owner_id: str, now: datetime, limit: int = 100) -> List[ReminderPublic]:
    reminder_collection = get_reminder_collection()
    reminders_cursor = reminder_collection.find(
        {"ownerId": owner_id, "status": {"$in": [s.value for s in UPCOMING_STATUSES]}}
    ).sort("fireAt", 1).limit(limit)

    results = []
    async for doc in reminders_cursor:
        try:
            reminder_db = ReminderInDB(**doc)
        except ValidationError as e:
            logger.warning("Reminder %s is malformed, hiding from list: %s", doc.get("_id"), e)
            continue
        results.append(ReminderPublic(
            **reminder_db.model_dump(),
            overdue=reminder_db.effective_due_at <= now,
        ))
    return results
