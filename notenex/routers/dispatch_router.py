# notenex/routers/dispatch_router.py
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from notenex.dependencies import require_dispatch_token
from notenex.models.dispatch_models import DispatchResult
from notenex.services import dispatch_service
from notenex.services.reminder_service import ReminderScanError

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post(
    "/dispatch",
    response_model=DispatchResult,
    dependencies=[Depends(require_dispatch_token)],
    summary="Deliver due reminders (called by the external scheduler)",
)
async def dispatch_due_reminders():
    """
    Process one batch of due reminders:
    1. Scan scheduled and snoozed reminders whose effective due time has passed.
    2. Claim, deliver over the resolved channels and reschedule each one.
    3. Report how many were processed and which channels were delivered.
    """
    try:
        result = await dispatch_service.run_dispatch()
    except ReminderScanError as e:
        logger.error("Reminder dispatch aborted: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to query due reminders.",
        )

    content = result.model_dump(mode="json")
    if result.reminders is None: # nothing was due
        content.pop("reminders")
    return JSONResponse(content=content)
