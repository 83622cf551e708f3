# notenex/services/dispatch_service.py
import logging
from typing import List, Optional

from notenex.models.dispatch_models import DispatchResult, ProcessedReminder
from notenex.models.reminder_models import ReminderInDB
from notenex.services import note_service, reminder_service
from notenex.services.channel_resolver import DispatchContext, resolve_channels
from notenex.services.notification_service import deliver_reminder
from notenex.services.recurrence_service import RecurrenceConfigError, next_fire_time, resolve_timezone

logger = logging.getLogger(__name__)


async def run_dispatch(ctx: Optional[DispatchContext] = None, limit: Optional[int] = None) -> DispatchResult:
    """
    One batch: scan, then claim, deliver, reschedule and commit each due
    reminder in turn. Only a failed scan aborts the run.
    """
    ctx = ctx or DispatchContext()
    logger.info("Dispatch run %s started at %s", ctx.run_id, ctx.now.isoformat())

    try:
        await reminder_service.release_stale_claims(ctx.now)
    except Exception:
        logger.exception("Failed to release stale reminder claims")

    due_reminders = await reminder_service.fetch_due_reminders(ctx.now, limit)
    if not due_reminders:
        logger.info("Dispatch run %s: no due reminders", ctx.run_id)
        return DispatchResult(processed=0)

    processed: List[ProcessedReminder] = []
    for reminder in due_reminders:
        outcome = await process_reminder(reminder, ctx)
        if outcome:
            processed.append(outcome)

    logger.info("Dispatch run %s processed %d of %d due reminders", ctx.run_id, len(processed), len(due_reminders))
    return DispatchResult(processed=len(processed), reminders=processed)


async def process_reminder(reminder: ReminderInDB, ctx: DispatchContext) -> Optional[ProcessedReminder]:
    try:
        claimed = await reminder_service.claim_reminder(reminder, ctx.run_id, ctx.now)
    except Exception:
        logger.exception("Failed to claim reminder %s", reminder.id)
        return None
    if not claimed:
        logger.info("Reminder %s already claimed or changed since scan, skipping", reminder.id)
        return None

    try:
        return await _dispatch_claimed(reminder, ctx)
    except Exception:
        logger.exception("Dispatch failed for reminder %s; releasing claim", reminder.id)
        try:
            await reminder_service.release_claim(reminder, ctx.run_id, ctx.now)
        except Exception:
            logger.exception("Failed to release claim on reminder %s", reminder.id)
        return None


async def _dispatch_claimed(reminder: ReminderInDB, ctx: DispatchContext) -> Optional[ProcessedReminder]:
    target = await resolve_channels(reminder, ctx)
    tz = resolve_timezone(target.timezone)
    delivered = await deliver_reminder(reminder, target, tz)

    error = None
    try:
        next_fire_at = next_fire_time(reminder.frequency, reminder.effective_due_at, reminder.customCron, tz)
    except RecurrenceConfigError as e:
        logger.error("Reminder %s has an unusable recurrence, treating as one-off: %s", reminder.id, e)
        error = str(e)
        next_fire_at = None

    committed = await reminder_service.mark_dispatched(reminder, ctx.run_id, ctx.now, next_fire_at, error)
    if not committed:
        # Another run now owns the reminder; its outcome is not ours to report
        logger.warning("Dispatch run %s lost reminder %s before commit; not counted", ctx.run_id, reminder.id)
        return None

    if next_fire_at and reminder.noteId:
        try:
            if not await note_service.update_note_reminder_at(reminder.ownerId, reminder.noteId, next_fire_at, ctx.now):
                logger.warning("Note %s for reminder %s not found; linkage not updated", reminder.noteId, reminder.id)
        except Exception as e:
            logger.error("Failed to update recurring reminder linkage for note %s: %s", reminder.noteId, e)

    return ProcessedReminder(
        reminderId=reminder.id,
        ownerId=reminder.ownerId,
        channels=delivered,
        nextFireAt=next_fire_at,
    )
