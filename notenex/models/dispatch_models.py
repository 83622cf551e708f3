# notenex/models/dispatch_models.py
from typing import List, Optional
from pydantic import BaseModel, Field
from notenex.models.common_models import UTCDateTime
from notenex.models.reminder_models import ReminderChannel

class ProcessedReminder(BaseModel):
    reminderId: str
    ownerId: str
    channels: List[ReminderChannel] = Field(default_factory=list, description="Channels actually delivered")
    nextFireAt: Optional[UTCDateTime] = None

class DispatchResult(BaseModel):
    processed: int = 0
    # None when the scan found nothing due; the endpoint then omits the key
    reminders: Optional[List[ProcessedReminder]] = None
