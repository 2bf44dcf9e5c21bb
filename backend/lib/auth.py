"""
Authentication utilities for bearer token validation
"""
import logging
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastapi import Header, HTTPException
from jose import JWTError, jwt

from .supabase_client import get_supabase_client

load_dotenv()
load_dotenv('../.env')

logger = logging.getLogger(__name__)

# Supabase signs its access tokens with this secret
JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")
JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"


def _bearer_token(authorization: str) -> str:
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header format")
    return authorization.replace("Bearer ", "", 1)


def _decode_locally(token: str) -> Optional[Dict[str, Any]]:
    """
    Verify the token signature with the shared secret.

    Returns None when no secret is configured, so the caller asks Supabase.
    """
    if not JWT_SECRET:
        return None
    try:
        claims = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM], audience=JWT_AUDIENCE)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    if not claims.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return {"id": claims["sub"], "email": claims.get("email")}


async def get_current_user(authorization: Optional[str] = Header(None)):
    """
    Validate bearer token and return user info

    Args:
        authorization: Bearer token from Authorization header

    Returns:
        dict: User information including id, email, full_name

    Raises:
        HTTPException: If token is invalid or the learner profile is missing
    """
    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")

    token = _bearer_token(authorization)

    try:
        supabase = get_supabase_client()

        user = _decode_locally(token)
        if user is None:
            user_response = supabase.auth.get_user(token)
            if not user_response or not user_response.user:
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            user = {"id": user_response.user.id, "email": user_response.user.email}

        profile_response = supabase.table('profiles').select('*').eq('id', user["id"]).maybe_single().execute()

        if profile_response is None or not profile_response.data:
            raise HTTPException(status_code=404, detail="User profile not found")

        profile = profile_response.data

        return {
            "id": user["id"],
            "email": user["email"],
            "full_name": profile.get("full_name"),
            "profile": profile,
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ [Auth] Could not validate credentials: {e}")
        raise HTTPException(status_code=401, detail="Could not validate credentials")


async def get_optional_user(authorization: Optional[str] = Header(None)):
    """
    Like get_current_user, but anonymous requests are allowed.

    Returns:
        dict or None: User info when a bearer token is sent, None otherwise
    """
    if not authorization:
        return None
    return await get_current_user(authorization)
