# notenex/dependencies.py
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from notenex.core.config import settings
from notenex.core import security
from notenex.models.user_models import TokenPayload

logger = logging.getLogger(__name__)

# Tokens are issued by the managed auth provider; tokenUrl only documents where they come from
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/token")

async def require_dispatch_token(
    x_reminder_dispatch_token: Optional[str] = Header(default=None),
) -> None:
    """
    Guard for the scheduler-facing trigger. Open when no REMINDER_DISPATCH_TOKEN is configured.
    """
    if not security.verify_dispatch_token(x_reminder_dispatch_token):
        logger.warning("Rejected reminder dispatch call with missing or invalid token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

async def get_current_user_payload(token: str = Depends(oauth2_scheme)) -> TokenPayload:
    payload = security.decode_token(token)
    if not payload or not payload.sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload

async def get_current_user_id(payload: TokenPayload = Depends(get_current_user_payload)) -> str:
    if payload.type != "access":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access token required")
    return str(payload.sub)
