"""
Authentication and tenant authorization for Supabase-issued JWTs.

- get_current_user verifies the bearer token (locally with python-jose when
  SUPABASE_JWT_SECRET is set, otherwise through the Supabase Auth API).
- require_tenant_admin resolves the caller's profile in the target company
  and rejects anyone who is not an owner or admin there.
"""

import logging
import os
from fastapi import HTTPException, Header
from typing import Optional
from cohort.db import supabase, supabase_admin

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level JWT secret, loaded once at startup.
# Set SUPABASE_JWT_SECRET in your environment (Project Settings > API > JWT Secret).
# When not set the implementation falls back to the Supabase Auth API.
# ---------------------------------------------------------------------------
SUPABASE_JWT_SECRET: Optional[str] = os.environ.get("SUPABASE_JWT_SECRET") or None

# Profile roles allowed to manage a company's members
ADMIN_ROLES = {"owner", "admin"}


async def get_current_user(authorization: Optional[str] = Header(None)) -> str:
    """
    Extract and verify JWT token from Authorization header.

    Args:
        authorization: Authorization header with format "Bearer <token>"

    Returns:
        user_id: Authenticated user's ID (the JWT ``sub`` claim)

    Raises:
        HTTPException: 401 if token is missing, invalid, or expired
    """
    if not authorization:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated"
        )

    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        raise HTTPException(
            status_code=401,
            detail="Invalid authentication credentials"
        )

    token = parts[1]

    if SUPABASE_JWT_SECRET:
        return _verify_jwt_locally(token)

    return await _verify_jwt_remotely(token)


def _verify_jwt_locally(token: str) -> str:
    """
    Verify a Supabase JWT locally using python-jose and return the user ID.

    Raises:
        HTTPException 401 on any verification failure.
    """
    from jose import jwt, JWTError, ExpiredSignatureError

    try:
        payload = jwt.decode(
            token,
            SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            options={"verify_aud": False},  # Supabase JWTs carry aud="authenticated"
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id: Optional[str] = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")

    return user_id


async def _verify_jwt_remotely(token: str) -> str:
    """
    Verify a JWT via the Supabase Auth API (fallback when no JWT secret is set).

    Raises:
        HTTPException 401 on any verification failure.
    """
    try:
        response = supabase.auth.get_user(token)

        if not response.user:
            raise HTTPException(
                status_code=401,
                detail="Invalid token"
            )

        return response.user.id

    except HTTPException:
        raise
    except Exception as e:
        if "expired" in str(e).lower():
            raise HTTPException(
                status_code=401,
                detail="Token expired"
            )

        raise HTTPException(
            status_code=401,
            detail="Invalid token"
        )


async def require_tenant_admin(user_id: str, company_id: Optional[str] = None) -> dict:
    """
    Return the caller's active profile in the target company, requiring an
    owner/admin role there.

    When ``company_id`` is not supplied (no X-Company-Id header), the caller's
    first active profile decides the tenant, which covers single-company users.

    Returns:
        The profile row ({"company_id", "role", ...}).

    Raises:
        HTTPException: 403 if no active profile exists or the role is not
        owner/admin, 500 on database error.
    """
    try:
        query = (
            supabase_admin.table("profiles")
            .select("id, user_id, company_id, role, first_name, last_name, email")
            .eq("user_id", user_id)
            .eq("is_active", True)
        )
        if company_id:
            query = query.eq("company_id", company_id)
        result = query.limit(1).execute()
    except Exception as e:
        logger.error(f"Profile lookup failed for user {user_id}: {e}")
        raise HTTPException(
            status_code=500,
            detail="Failed to verify permissions"
        )

    if not result.data:
        raise HTTPException(
            status_code=403,
            detail="No active profile found"
        )

    profile = result.data[0]
    if profile.get("role") not in ADMIN_ROLES:
        raise HTTPException(
            status_code=403,
            detail="Forbidden: Admin access required"
        )

    return profile
