# notenex/services/third_party_services.py
import logging

import httpx
from notenex.core.config import settings

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_PATH = "/2010-04-01/Accounts/{account_sid}/Messages.json"

# --- Resend (email) ---
async def send_email(to: str, subject: str, html: str) -> bool:
    """
    Send one HTML email through Resend.
    Returns False (never raises) when credentials are missing or the call fails.
    """
    if not settings.RESEND_API_KEY or not settings.RESEND_FROM_EMAIL:
        logger.warning("Resend credentials missing; skipping email notification")
        return False

    payload = {
        "from": settings.RESEND_FROM_EMAIL,
        "to": to,
        "subject": subject,
        "html": html,
    }
    headers = {
        "Accept": "application/json",
        "Authorization": f"Bearer {settings.RESEND_API_KEY}",
    }
    try:
        async with httpx.AsyncClient(timeout=settings.PROVIDER_TIMEOUT_SECONDS) as client:
            response = await client.post(settings.RESEND_API_URL, json=payload, headers=headers)
            response.raise_for_status()
            return True
    except httpx.HTTPStatusError as e:
        logger.error("Failed to send email reminder: %s - %s", e.response.status_code, e.response.text)
        return False
    except httpx.RequestError as e:
        logger.error("Request error while sending email reminder: %s", e)
        return False


# --- Twilio (SMS) ---
async def send_sms(to: str, body: str) -> bool:
    """
    Send one text message through Twilio's Messages API.
    Returns False (never raises) when credentials are missing or the call fails.
    """
    if not settings.TWILIO_ACCOUNT_SID or not settings.TWILIO_AUTH_TOKEN:
        logger.warning("Twilio credentials missing; skipping SMS notification")
        return False

    url = settings.TWILIO_API_BASE_URL.rstrip("/") + TWILIO_MESSAGES_PATH.format(
        account_sid=settings.TWILIO_ACCOUNT_SID
    )
    form = {"To": to, "Body": body}
    if settings.TWILIO_FROM_NUMBER:
        form["From"] = settings.TWILIO_FROM_NUMBER

    try:
        async with httpx.AsyncClient(timeout=settings.PROVIDER_TIMEOUT_SECONDS) as client:
            response = await client.post(
                url,
                data=form,
                auth=(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN),
            )
            response.raise_for_status()
            return True
    except httpx.HTTPStatusError as e:
        logger.error("Failed to send SMS reminder: %s - %s", e.response.status_code, e.response.text)
        return False
    except httpx.RequestError as e:
        logger.error("Request error while sending SMS reminder: %s", e)
        return False
