"""
Pydantic models for the bulk member import feature.

Models:
  InviteRole         : fixed role enumeration for invitations
  InviteStatus       : invitation lifecycle states
  ImportErrorEntry   : one hard failure in the import report
  ImportDuplicate    : one skipped (duplicate) row
  ImportDetail       : per-row outcome for every non-error row
  ImportReport       : full report returned by POST /api/members/import
  Invitation         : user_invites DB row

The report is serialized with camelCase keys (model_dump(by_alias=True)) to
match what the admin import dialog renders.
"""

from enum import Enum
from typing import Any, List, Optional
from pydantic import BaseModel, Field


class InviteRole(str, Enum):
    """Roles an invitation can grant inside a company."""
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class InviteStatus(str, Enum):
    """Invitation states. Only PENDING is written by the import pipeline."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


class DetailStatus(str, Enum):
    """Per-row outcome labels shown in the import results dialog."""
    INVITED = "invited"
    INVITED_NO_EMAIL = "invited_no_email"
    DUPLICATE = "duplicate"
    INVITE_PENDING = "invite_pending"


# ---------------------------------------------------------------------------
# Report entries
# ---------------------------------------------------------------------------

class ImportErrorEntry(BaseModel):
    line: int
    email: str
    error: str


class ImportDuplicate(BaseModel):
    line: int
    email: str


class ImportDetail(BaseModel):
    model_config = {"populate_by_name": True, "use_enum_values": True}

    line: int
    email: str
    status: DetailStatus
    first_name: str = Field(default="", alias="firstName")
    last_name: str = Field(default="", alias="lastName")


class ImportReport(BaseModel):
    """
    Result of one import run.

    Invariant: successful + len(errors) + len(duplicates) == total_processed.
    """
    model_config = {"populate_by_name": True}

    total_processed: int = Field(default=0, alias="totalProcessed")
    successful: int = 0
    invited: int = 0
    skipped: int = 0
    errors: List[ImportErrorEntry] = Field(default_factory=list)
    duplicates: List[ImportDuplicate] = Field(default_factory=list)
    details: List[ImportDetail] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Invitation DB row
# ---------------------------------------------------------------------------

class Invitation(BaseModel):
    """user_invites record as written by the invitation issuer."""
    model_config = {"from_attributes": True, "extra": "ignore"}

    id: Optional[str] = None
    company_id: str
    email: str
    role: InviteRole = InviteRole.MEMBER
    invited_by: str
    status: InviteStatus = InviteStatus.PENDING
    token: str
    expires_at: str
    course_access: List[Any] = Field(default_factory=list)
    created_at: Optional[str] = None
