# notenex/services/notification_service.py
import html
import logging
from datetime import datetime, tzinfo
from typing import List

from notenex.models.reminder_models import ReminderChannel, ReminderInDB
from notenex.services import third_party_services
from notenex.services.channel_resolver import ResolvedChannels

logger = logging.getLogger(__name__)

UNTITLED_NOTE = "Untitled note"

EMAIL_TEMPLATE = """
<div style="font-family: 'Inter', Arial, sans-serif; line-height: 1.6;">
  <h2 style="margin-bottom: 8px;">{subject}</h2>
  <p style="margin: 0 0 12px;">Scheduled for {due}.</p>
  <p style="margin: 0 0 12px; white-space: pre-wrap;">{body}</p>
  <p style="margin: 0; font-size: 12px; color: #6b7280;">Sent by NoteNex reminders</p>
</div>
"""


def format_due_time(due_at: datetime, tz: tzinfo) -> str:
    """Medium date, short time: 'Mar 1, 2024, 9:00 AM'."""
    local = due_at.astimezone(tz)
    hour = local.hour % 12 or 12
    return f"{local:%b} {local.day}, {local.year}, {hour}:{local:%M} {local:%p}"


def build_subject(reminder: ReminderInDB) -> str:
    return f"Reminder: {reminder.titleSnapshot or UNTITLED_NOTE}"


def build_email_html(subject: str, formatted_due: str, body: str) -> str:
    return EMAIL_TEMPLATE.format(
        subject=html.escape(subject),
        due=html.escape(formatted_due),
        body=html.escape(body or ""),
    )


def build_sms_body(subject: str, formatted_due: str) -> str:
    return f"{subject}\nDue {formatted_due}"


async def _deliver_push(reminder: ReminderInDB) -> bool:
    # The in-app overdue list is the delivery surface; nothing to send
    logger.debug("Push reminder %s surfaced in-app", reminder.id)
    return True


async def _deliver_email(reminder: ReminderInDB, target: ResolvedChannels, subject: str, formatted_due: str) -> bool:
    if not target.email:
        logger.info("No email address for %s; skipping email for reminder %s", reminder.ownerId, reminder.id)
        return False
    return await third_party_services.send_email(
        to=target.email,
        subject=subject,
        html=build_email_html(subject, formatted_due, reminder.bodySnapshot),
    )


async def _deliver_sms(reminder: ReminderInDB, target: ResolvedChannels, subject: str, formatted_due: str) -> bool:
    if not target.sms_number:
        return False
    return await third_party_services.send_sms(
        to=target.sms_number,
        body=build_sms_body(subject, formatted_due),
    )


async def deliver_reminder(reminder: ReminderInDB, target: ResolvedChannels, tz: tzinfo) -> List[ReminderChannel]:
    """
    Attempt every resolved channel independently and return the ones that
    were delivered, in the order they were requested.
    """
    subject = build_subject(reminder)
    formatted_due = format_due_time(reminder.effective_due_at, tz)
    delivered: List[ReminderChannel] = []

    for channel in target.channels:
        try:
            if channel is ReminderChannel.PUSH:
                ok = await _deliver_push(reminder)
            elif channel is ReminderChannel.EMAIL:
                ok = await _deliver_email(reminder, target, subject, formatted_due)
            elif channel is ReminderChannel.SMS:
                ok = await _deliver_sms(reminder, target, subject, formatted_due)
            else:
                raise ValueError(f"Unhandled reminder channel {channel!r}")
        except Exception:
            logger.exception("Channel %s failed for reminder %s", channel.value, reminder.id)
            ok = False
        if ok:
            delivered.append(channel)
    return delivered
