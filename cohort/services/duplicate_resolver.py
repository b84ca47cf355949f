"""
Duplicate detection for import records.

Two independent lookups, both scoped to the company and case-insensitive on
email, run in this order:

  1. profiles      : the email already belongs to a member   -> "duplicate"
  2. user_invites  : a pending, unexpired invite already exists -> "invite_pending"

Keeping them separate lets the report tell an operator which follow-up a
skipped row needs.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Union

from supabase import Client

from cohort.models.member_import import DetailStatus, InviteStatus
from cohort.services.import_report import RecordFailure

logger = logging.getLogger(__name__)


def escape_ilike(value: str) -> str:
    """Escape LIKE wildcards so ilike performs a case-insensitive equality."""
    return (
        value.replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
    )


def member_exists(db: Client, company_id: str, email: str) -> bool:
    """True if a profile in this company already uses the email."""
    result = (
        db.table("profiles")
        .select("id")
        .eq("company_id", company_id)
        .ilike("email", escape_ilike(email))
        .limit(1)
        .execute()
    )
    return bool(result.data)


def pending_invite_exists(db: Client, company_id: str, email: str) -> bool:
    """True if an unexpired pending invitation for the email exists in this company."""
    now_iso = datetime.now(timezone.utc).isoformat()
    result = (
        db.table("user_invites")
        .select("id")
        .eq("company_id", company_id)
        .ilike("email", escape_ilike(email))
        .eq("status", InviteStatus.PENDING.value)
        .gt("expires_at", now_iso)
        .limit(1)
        .execute()
    )
    return bool(result.data)


def check_duplicate(
    db: Client,
    company_id: str,
    email: str,
) -> Union[Optional[DetailStatus], RecordFailure]:
    """
    Classify an email against existing company state.

    Returns:
        DetailStatus.DUPLICATE if a member already has the email,
        DetailStatus.INVITE_PENDING if a pending invite exists,
        None if the email is free,
        RecordFailure if either lookup failed.
    """
    try:
        if member_exists(db, company_id, email):
            return DetailStatus.DUPLICATE
        if pending_invite_exists(db, company_id, email):
            return DetailStatus.INVITE_PENDING
    except Exception as e:
        logger.warning(f"Duplicate lookup failed for {email}: {e}")
        return RecordFailure(f"Erro ao verificar duplicidade: {e}")
    return None
