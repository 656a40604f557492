"""
Caller identity for the assistant API

Authentication happens upstream: the gateway forwards the verified user id
and subscription tier in X-User-Id / X-User-Tier. Admin endpoints require the
shared ADMIN_SECRET in X-Admin-Secret.
"""
import os
import secrets
from typing import Optional

from dotenv import load_dotenv
from fastapi import Header, HTTPException

from ai_learning_assistant.errors import AssistantErrorCode, create_error
from ai_learning_assistant.models import Tier

load_dotenv()


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_tier: Optional[str] = Header(None),
):
    """
    Read the caller's identity from gateway headers

    Returns:
        dict: {"id": user id, "tier": Tier}

    Raises:
        HTTPException: 401 if no user id was forwarded
    """
    if not x_user_id or not x_user_id.strip():
        error = create_error(AssistantErrorCode.NOT_AUTHENTICATED)
        raise HTTPException(status_code=401, detail=error.to_error_response()["error"])

    return {
        "id": x_user_id.strip(),
        "tier": Tier.parse(x_user_tier),
    }


async def require_admin(x_admin_secret: Optional[str] = Header(None)):
    """
    Check the admin secret

    Raises:
        HTTPException: 403 if ADMIN_SECRET is unset or does not match
    """
    expected = os.getenv("ADMIN_SECRET", "")
    if not expected:
        raise HTTPException(status_code=403, detail="Admin endpoints are disabled (ADMIN_SECRET not set)")
    if not x_admin_secret or not secrets.compare_digest(x_admin_secret, expected):
        raise HTTPException(status_code=403, detail="Admin access required")
