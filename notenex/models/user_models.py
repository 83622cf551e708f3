# notenex/models/user_models.py
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
from notenex.models.common_models import PyObjectId
from notenex.models.reminder_models import ReminderChannel, parse_channels

# --- Auth directory record (read-only here) ---
class UserContact(BaseModel):
    email: Optional[str] = None
    phoneNumber: Optional[str] = None
    displayName: Optional[str] = None

# --- User preferences (read-only here) ---
class UserPreference(BaseModel):
    reminderChannels: List[ReminderChannel] = Field(default_factory=list)
    smsNumber: Optional[str] = None
    timezone: Optional[str] = None # IANA name, falls back to DEFAULT_TIMEZONE
    # Stored by the settings screen; dispatch does not suppress during quiet hours
    quietHoursStart: Optional[str] = None
    quietHoursEnd: Optional[str] = None

    @field_validator("reminderChannels", mode="before")
    @classmethod
    def drop_unknown_channels(cls, v):
        return parse_channels(v)

# Token payload for the in-app reminder list
class TokenPayload(BaseModel):
    sub: Optional[PyObjectId] = None # subject, the owner id
    type: Optional[str] = Field(default="access")
