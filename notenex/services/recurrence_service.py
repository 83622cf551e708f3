# notenex/services/recurrence_service.py
"""
Next-occurrence arithmetic for repeating reminders.

Daily and weekly reminders move by calendar days in the owner's timezone, so a
09:00 reminder stays at 09:00 local time across month ends and DST switches.
Custom reminders are evaluated as five-field cron expressions in the same zone.
"""
import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter, CroniterError

from notenex.core.config import settings
from notenex.models.common_models import ensure_utc
from notenex.models.reminder_models import ReminderFrequency

logger = logging.getLogger(__name__)


class RecurrenceConfigError(ValueError):
    """A reminder asks for a recurrence that cannot be evaluated."""


def resolve_timezone(name: Optional[str]) -> tzinfo:
    for candidate in (name, settings.DEFAULT_TIMEZONE):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, falling back", candidate)
    return timezone.utc


def _add_calendar_days(due_at: datetime, days: int, tz: tzinfo) -> datetime:
    local = ensure_utc(due_at).astimezone(tz)
    # Same wall-clock time N days later; the zone decides the new UTC offset
    shifted = (local.replace(tzinfo=None) + timedelta(days=days)).replace(tzinfo=tz)
    return shifted.astimezone(timezone.utc)


def _next_cron_match(expression: Optional[str], due_at: datetime, tz: tzinfo) -> datetime:
    if not expression or not expression.strip():
        raise RecurrenceConfigError("Custom frequency requires a cron expression")
    if not croniter.is_valid(expression):
        raise RecurrenceConfigError(f"Invalid cron expression '{expression}'")
    local = ensure_utc(due_at).astimezone(tz)
    try:
        nxt = croniter(expression, local).get_next(datetime)
    except (CroniterError, ValueError) as e:
        raise RecurrenceConfigError(f"Cron expression '{expression}' has no next match: {e}") from e
    return ensure_utc(nxt)


def next_fire_time(
    frequency: ReminderFrequency,
    due_at: datetime,
    custom_cron: Optional[str] = None,
    tz: tzinfo = timezone.utc,
) -> Optional[datetime]:
    """
    Next fire time after `due_at` (the effective due time), or None when the
    reminder is terminal. Results are UTC-aware.
    """
    if frequency == ReminderFrequency.ONCE:
        return None
    if frequency == ReminderFrequency.DAILY:
        return _add_calendar_days(due_at, 1, tz)
    if frequency == ReminderFrequency.WEEKLY:
        return _add_calendar_days(due_at, 7, tz)
    if frequency == ReminderFrequency.CUSTOM:
        return _next_cron_match(custom_cron, due_at, tz)
    raise RecurrenceConfigError(f"Unsupported frequency '{frequency}'")
