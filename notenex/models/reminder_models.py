# notenex/models/reminder_models.py
import logging
from enum import Enum
from typing import Any, List, Optional
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from notenex.models.common_models import BaseDBModel, PyObjectId, UTCDateTime

logger = logging.getLogger(__name__)


class ReminderChannel(str, Enum):
    PUSH = "push"
    EMAIL = "email"
    SMS = "sms"


class ReminderStatus(str, Enum):
    SCHEDULED = "scheduled"
    SNOOZED = "snoozed"
    SENT = "sent"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    DISPATCHING = "dispatching" # claimed by a dispatch run


class ReminderFrequency(str, Enum):
    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    CUSTOM = "custom"


DISPATCHABLE_STATUSES = (ReminderStatus.SCHEDULED, ReminderStatus.SNOOZED)
UPCOMING_STATUSES = (ReminderStatus.SCHEDULED, ReminderStatus.SNOOZED, ReminderStatus.SENT)


def parse_channels(value: Any) -> List[ReminderChannel]:
    """Ordered, de-duplicated channel list; unknown entries are dropped."""
    if not value:
        return []
    channels: List[ReminderChannel] = []
    for raw in value:
        try:
            channel = ReminderChannel(raw)
        except ValueError:
            logger.warning("Ignoring unknown reminder channel %r", raw)
            continue
        if channel not in channels:
            channels.append(channel)
    return channels


class ReminderBase(BaseModel):
    ownerId: Optional[str] = None
    noteId: Optional[str] = None
    fireAt: UTCDateTime
    snoozeUntil: Optional[UTCDateTime] = None
    status: ReminderStatus = ReminderStatus.SCHEDULED
    channels: List[ReminderChannel] = Field(default_factory=list)
    frequency: ReminderFrequency = ReminderFrequency.ONCE
    customCron: Optional[str] = None
    titleSnapshot: str = ""
    bodySnapshot: str = ""
    labelIds: List[str] = Field(default_factory=list)

    @field_validator("channels", mode="before")
    @classmethod
    def drop_unknown_channels(cls, v: Any) -> List[ReminderChannel]:
        return parse_channels(v)

    @field_validator("titleSnapshot", "bodySnapshot", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("frequency", mode="before")
    @classmethod
    def default_frequency(cls, v: Any) -> Any:
        return ReminderFrequency.ONCE if v is None else v

    @property
    def effective_due_at(self) -> datetime:
        return self.snoozeUntil or self.fireAt

    def is_due(self, now: datetime) -> bool:
        return self.status in DISPATCHABLE_STATUSES and self.effective_due_at <= now


class ReminderInDB(BaseDBModel, ReminderBase):
    lastSentAt: Optional[UTCDateTime] = None
    lastError: Optional[str] = None
    claimToken: Optional[str] = None
    claimedAt: Optional[UTCDateTime] = None
    claimedFromStatus: Optional[ReminderStatus] = None

    @property
    def dedup_key(self) -> str:
        return f"{self.ownerId}/{self.id}"


class ReminderPublic(BaseDBModel, ReminderBase):
    id: PyObjectId
    lastSentAt: Optional[UTCDateTime] = None
    overdue: bool = False
