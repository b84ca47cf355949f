"""
Bulk member import pipeline.

  decode -> normalize -> validate -> duplicate check -> issue invite -> email

Records are processed one at a time, in file order. Every stage hands back an
explicit value (RecordFailure for an error outcome) and run_import branches
on it, so a bad row only ever produces an entry in the report. Anything
unexpected raised while handling one row is caught at the row boundary.

Invitations issued earlier in the same run are remembered by email, so a file
listing the same person twice yields one invite and one "invite_pending" skip.

Collaborators (Supabase client, mailer, tenant context) are passed in by the
caller; this module holds no module-level state.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from supabase import Client

from cohort.models.member_import import DetailStatus, ImportReport
from cohort.services.duplicate_resolver import check_duplicate
from cohort.services.field_normalizer import ImportRecord, normalize_row
from cohort.services.import_report import ImportReportBuilder, RecordFailure
from cohort.services.invitation_issuer import issue_invitation
from cohort.services.invite_mailer import InviteMailer
from cohort.services.record_validator import validate_record
from cohort.services.tabular_decoder import DecodedRow

logger = logging.getLogger(__name__)


@dataclass
class ImportContext:
    """Who is importing into which company."""
    company_id: str
    invited_by: str
    company_name: str = "nossa plataforma"


def get_company_name(db: Client, company_id: str) -> Optional[str]:
    """Return the company's display name, or None if it cannot be loaded."""
    try:
        result = (
            db.table("companies")
            .select("name")
            .eq("id", company_id)
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.warning(f"Could not load company name for {company_id}: {e}")
        return None
    if result.data:
        return result.data[0].get("name")
    return None


def _process_record(
    record: ImportRecord,
    ctx: ImportContext,
    db: Client,
    mailer: InviteMailer,
    issued_emails: set[str],
    report: ImportReportBuilder,
) -> None:
    """Run one normalized record through validation, dedup, issue and email."""
    reason = validate_record(record)
    if reason is not None:
        report.add_error(record.line_number, record.email, reason)
        return

    email_key = record.email.lower()

    duplicate = check_duplicate(db, ctx.company_id, record.email)
    if isinstance(duplicate, RecordFailure):
        report.add_error(record.line_number, record.email, duplicate.error)
        return
    if duplicate is None and email_key in issued_emails:
        duplicate = DetailStatus.INVITE_PENDING
    if duplicate is not None:
        report.add_duplicate(
            record.line_number,
            record.email,
            duplicate,
            first_name=record.first_name,
            last_name=record.last_name,
        )
        return

    invitation = issue_invitation(
        db,
        company_id=ctx.company_id,
        invited_by=ctx.invited_by,
        email=record.email,
        role=record.role,
    )
    if isinstance(invitation, RecordFailure):
        report.add_error(record.line_number, record.email, invitation.error)
        return
    issued_emails.add(email_key)

    try:
        email_sent = mailer.send_invitation(
            to_email=invitation.email,
            token=invitation.token,
            company_name=ctx.company_name,
            role=invitation.role.value,
        )
    except Exception:
        logger.exception("Invitation email dispatch raised for line %d", record.line_number)
        email_sent = False
    if not email_sent:
        logger.warning(
            "Invitation stored for line %d (%s) but email was not delivered",
            record.line_number,
            invitation.email,
        )

    report.add_invited(
        record.line_number,
        record.email,
        email_sent,
        first_name=record.first_name,
        last_name=record.last_name,
    )


def run_import(
    rows: Iterable[DecodedRow],
    ctx: ImportContext,
    db: Client,
    mailer: InviteMailer,
) -> ImportReport:
    """
    Process every decoded row and return the aggregated report.

    Args:
        rows: Output of tabular_decoder.decode_upload().
        ctx: Company, inviter and company display name.
        db: Supabase client used for lookups, token RPC and inserts.
        mailer: Invitation email sender.

    Returns:
        ImportReport with one outcome per row.
    """
    report = ImportReportBuilder()
    issued_emails: set[str] = set()

    for row in rows:
        record = None
        try:
            record = normalize_row(row)
            _process_record(record, ctx, db, mailer, issued_emails, report)
        except Exception:
            logger.exception("Unexpected error processing import line %d", row.line_number)
            report.add_error(
                row.line_number,
                record.email if record else "",
                f"Erro interno ao processar linha {row.line_number}",
            )

    result = report.build()
    logger.info(
        "Import finished for company %s: %d processed, %d invited, %d skipped, %d errors",
        ctx.company_id,
        result.total_processed,
        result.invited,
        result.skipped,
        len(result.errors),
    )
    return result
