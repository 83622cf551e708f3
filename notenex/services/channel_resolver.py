# notenex/services/channel_resolver.py
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from notenex.models.common_models import utc_now
from notenex.models.reminder_models import ReminderChannel, ReminderInDB
from notenex.models.user_models import UserContact, UserPreference
from notenex.services import user_service

logger = logging.getLogger(__name__)

DEFAULT_CHANNELS = [ReminderChannel.PUSH]


@dataclass
class DispatchContext:
    """State scoped to one dispatch run, passed explicitly through the call chain."""
    now: datetime = field(default_factory=utc_now)
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    contacts: Dict[str, UserContact] = field(default_factory=dict)
    # None marks an owner with no (or unreadable) preferences
    preferences: Dict[str, Optional[UserPreference]] = field(default_factory=dict)


@dataclass
class ResolvedChannels:
    channels: List[ReminderChannel]
    email: Optional[str] = None
    sms_number: Optional[str] = None
    timezone: Optional[str] = None


async def get_contact(ctx: DispatchContext, owner_id: str) -> UserContact:
    if owner_id not in ctx.contacts:
        ctx.contacts[owner_id] = await user_service.get_user_contact(owner_id)
    return ctx.contacts[owner_id]


async def get_preference(ctx: DispatchContext, owner_id: str) -> Optional[UserPreference]:
    if owner_id not in ctx.preferences:
        try:
            ctx.preferences[owner_id] = await user_service.get_user_preference(owner_id)
        except Exception as e:
            logger.error("Failed to read preferences for %s: %s", owner_id, e)
            ctx.preferences[owner_id] = None
    return ctx.preferences[owner_id]


async def resolve_channels(reminder: ReminderInDB, ctx: DispatchContext) -> ResolvedChannels:
    """
    Effective channels: the reminder's own list, else the owner's default
    reminderChannels, else push only. Contact details are looked up only for
    channels that need them.
    """
    owner_id = reminder.ownerId
    # Preferences also carry the owner's timezone, so they are read once per owner regardless
    prefs = await get_preference(ctx, owner_id)

    if reminder.channels:
        channels = list(reminder.channels)
    elif prefs and prefs.reminderChannels:
        channels = list(prefs.reminderChannels)
    else:
        channels = list(DEFAULT_CHANNELS)

    resolved = ResolvedChannels(channels=channels, timezone=prefs.timezone if prefs else None)

    if ReminderChannel.EMAIL in channels or ReminderChannel.SMS in channels:
        contact = await get_contact(ctx, owner_id)
        resolved.email = contact.email or None
        resolved.sms_number = contact.phoneNumber or None

    if ReminderChannel.SMS in channels and not resolved.sms_number:
        resolved.sms_number = (prefs.smsNumber or None) if prefs else None
        if not resolved.sms_number:
            logger.info("No phone number for %s; skipping SMS for reminder %s", owner_id, reminder.id)

    return resolved
