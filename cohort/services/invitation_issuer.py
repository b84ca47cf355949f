"""
Invitation issuer.

Creates one pending user_invites row per accepted import record:
  - token from the database's generate_invite_token() procedure
  - expires_at = now + INVITE_EXPIRY_DAYS (default 7)
  - role coerced into owner/admin/member

Failures are returned as RecordFailure values so a single bad row never
aborts the import.
"""

import logging
import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from supabase import Client

from cohort.models.member_import import Invitation, InviteRole, InviteStatus
from cohort.services.import_report import RecordFailure

logger = logging.getLogger(__name__)

INVITE_EXPIRY_DAYS = int(os.getenv("INVITE_EXPIRY_DAYS", "7"))


def coerce_role(role: Optional[str]) -> InviteRole:
    """Map a free-form role to InviteRole, defaulting to MEMBER."""
    try:
        return InviteRole((role or "").strip().lower())
    except ValueError:
        return InviteRole.MEMBER


def compute_expiry(now: Optional[datetime] = None) -> datetime:
    """Return the expiry timestamp for an invitation issued at ``now``."""
    now = now or datetime.now(timezone.utc)
    return now + timedelta(days=INVITE_EXPIRY_DAYS)


def generate_token(db: Client) -> str:
    """
    Ask the database for a fresh invite token.

    An empty RPC result falls back to a random hex UUID. RPC errors propagate.
    """
    result = db.rpc("generate_invite_token").execute()
    token = result.data
    if not token:
        logger.debug("generate_invite_token returned no data; using local token")
        return uuid.uuid4().hex
    return str(token)


def issue_invitation(
    db: Client,
    company_id: str,
    invited_by: str,
    email: str,
    role: Optional[str] = None,
    course_access: Optional[list] = None,
) -> Union[Invitation, RecordFailure]:
    """
    Persist a pending invitation for ``email``.

    Returns:
        The stored Invitation, or RecordFailure when token generation or the
        insert fails.
    """
    try:
        token = generate_token(db)
    except Exception as e:
        logger.error(f"Token generation failed for {email}: {e}")
        return RecordFailure(f"Erro ao gerar token: {e}")

    invitation = Invitation(
        company_id=company_id,
        email=email.strip().lower(),
        role=coerce_role(role),
        invited_by=invited_by,
        status=InviteStatus.PENDING,
        token=token,
        expires_at=compute_expiry().isoformat(),
        course_access=course_access or [],
    )

    try:
        result = (
            db.table("user_invites")
            .insert(invitation.model_dump(mode="json", exclude_none=True))
            .execute()
        )
    except Exception as e:
        logger.error(f"Error creating invite for {email}: {e}")
        return RecordFailure(f"Erro ao criar convite para {email}: {e}")

    if result.data:
        row = result.data[0]
        invitation.id = row.get("id")
        invitation.created_at = row.get("created_at")

    return invitation
