# notenex/core/security.py
import hmac
import logging
from typing import Optional

from jose import jwt, JWTError

from notenex.core.config import settings
from notenex.models.user_models import TokenPayload

logger = logging.getLogger(__name__)


# --- Dispatch trigger shared secret ---

def dispatch_token_required() -> bool:
    return bool(settings.REMINDER_DISPATCH_TOKEN)

def verify_dispatch_token(provided: Optional[str]) -> bool:
    """
    Compare the scheduler's header value against REMINDER_DISPATCH_TOKEN.
    With no token configured every caller is accepted.
    """
    expected = settings.REMINDER_DISPATCH_TOKEN
    if not expected:
        return True
    if not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


# --- Bearer tokens for the in-app reminder list ---

def _verification_key() -> str:
    if settings.ALGORITHM.startswith("RS"):
        if not settings.JWT_PUBLIC_KEY:
            raise ValueError("JWT_PUBLIC_KEY is not configured for decoding token with RS algorithm.")
        return settings.JWT_PUBLIC_KEY
    if settings.ALGORITHM.startswith("HS"):
        if not settings.JWT_SECRET_KEY:
            raise ValueError("JWT_SECRET_KEY is not configured for decoding token with HS algorithm.")
        return settings.JWT_SECRET_KEY
    raise ValueError(f"Unsupported JWT algorithm for decoding: {settings.ALGORITHM}")

def decode_token(token: str) -> Optional[TokenPayload]:
    try:
        payload_dict = jwt.decode(token, _verification_key(), algorithms=[settings.ALGORITHM])
        if "sub" not in payload_dict:
            raise JWTError("Token missing 'sub' claim.")
        return TokenPayload(**payload_dict)
    except JWTError as e:
        logger.info("JWT Error: %s", e)
        return None
    except ValueError as e:
        logger.error("Token configuration or validation error: %s", e)
        return None
