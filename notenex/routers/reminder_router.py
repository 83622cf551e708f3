# notenex/routers/reminder_router.py
from typing import List

from fastapi import APIRouter, Depends, Query

from notenex.dependencies import get_current_user_id
from notenex.models.common_models import utc_now
from notenex.models.reminder_models import ReminderPublic
from notenex.services import reminder_service

router = APIRouter()

@router.get("/upcoming", response_model=List[ReminderPublic], summary="Upcoming and overdue reminders of the current user")
async def read_upcoming_reminders(
    limit: int = Query(100, ge=1, le=500, description="Maximum number of reminders to return"),
    current_user_id: str = Depends(get_current_user_id),
):
    # This list is what the push channel delivers to: overdue entries surface in the app
    return await reminder_service.get_upcoming_reminders_for_owner(
        owner_id=current_user_id, now=utc_now(), limit=limit
    )
