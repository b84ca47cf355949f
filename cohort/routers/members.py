"""
Member import / export router.

Endpoints:
  POST /import            : bulk invite members from a .csv or .xlsx file
  GET  /import/template   : download the import template (csv or xlsx)
  GET  /export            : download the company's members as CSV

All endpoints require an owner/admin profile in the target company. The
company comes from the X-Company-Id header, or the caller's first active
profile when the header is absent.
"""

import io
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Header, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse

from cohort.auth import get_current_user, require_tenant_admin
from cohort.db import supabase_admin as supabase
from cohort.services.import_pipeline import ImportContext, get_company_name, run_import
from cohort.services.invitation_issuer import INVITE_EXPIRY_DAYS
from cohort.services.invite_mailer import InviteMailer
from cohort.services.member_files import (
    export_members_csv,
    generate_import_template_csv,
    generate_import_template_xlsx,
)
from cohort.services.tabular_decoder import DecodeError, decode_upload

logger = logging.getLogger(__name__)

router = APIRouter()

_MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024  # 10 MB

_XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _error(status_code: int, message: str, error_code: str) -> HTTPException:
    """Build an HTTPException with a structured detail payload."""
    return HTTPException(
        status_code=status_code,
        detail={"detail": message, "error_code": error_code},
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/import")
async def import_members(
    file: Optional[UploadFile] = File(None),
    x_company_id: Optional[str] = Header(None),
    origin: Optional[str] = Header(None),
    user_id: str = Depends(get_current_user),
) -> dict:
    """
    Invite every member listed in the uploaded file.

    Rows are processed independently; a bad or duplicate row is reported and
    never aborts the batch, so this returns 200 even if every row failed.

    Raises:
        403 if the caller is not an owner/admin of the company.
        400 if no file is sent, it is too large, or it cannot be decoded.
        500 on any other unexpected failure.
    """
    profile = await require_tenant_admin(user_id, x_company_id)
    company_id = profile["company_id"]

    if file is None:
        raise _error(400, "No file provided", "file_required")

    if getattr(file, "size", None) is not None and file.size > _MAX_FILE_SIZE_BYTES:
        raise _error(400, "File exceeds 10 MB limit.", "file_too_large")

    try:
        file_content = await file.read()

        if len(file_content) > _MAX_FILE_SIZE_BYTES:
            raise _error(400, "File exceeds 10 MB limit.", "file_too_large")

        try:
            rows = decode_upload(file_content, file.filename or "upload.csv")
        except DecodeError as e:
            raise _error(400, e.message, e.error_code)

        logger.info(
            "Importing %d rows from %s into company %s (user %s)",
            len(rows),
            file.filename,
            company_id,
            user_id,
        )

        ctx = ImportContext(
            company_id=company_id,
            invited_by=user_id,
            company_name=get_company_name(supabase, company_id) or "nossa plataforma",
        )
        mailer = InviteMailer.from_env(origin=origin, expiry_days=INVITE_EXPIRY_DAYS)

        report = run_import(rows, ctx, supabase, mailer)

    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error in member import: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

    return {
        "success": True,
        "message": "Importação concluída",
        "results": report.model_dump(by_alias=True, mode="json"),
    }


@router.get("/import/template")
async def get_import_template(
    file_format: str = Query("csv", alias="format", pattern="^(csv|xlsx)$"),
    x_company_id: Optional[str] = Header(None),
    user_id: str = Depends(get_current_user),
) -> StreamingResponse:
    """Download a ready-to-fill import template."""
    await require_tenant_admin(user_id, x_company_id)

    if file_format == "xlsx":
        content = generate_import_template_xlsx()
        media_type = _XLSX_MEDIA_TYPE
    else:
        content = generate_import_template_csv()
        media_type = "text/csv; charset=utf-8"

    return StreamingResponse(
        io.BytesIO(content),
        media_type=media_type,
        headers={
            "Content-Disposition": f'attachment; filename="template-usuarios.{file_format}"',
        },
    )


@router.get("/export")
async def export_members(
    x_company_id: Optional[str] = Header(None),
    user_id: str = Depends(get_current_user),
) -> StreamingResponse:
    """Download every member of the company as CSV, newest first."""
    profile = await require_tenant_admin(user_id, x_company_id)
    company_id = profile["company_id"]

    try:
        result = (
            supabase.table("profiles")
            .select("*")
            .eq("company_id", company_id)
            .order("created_at", desc=True)
            .execute()
        )
    except Exception as e:
        logger.error(f"Error fetching members for export: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch users")

    content = export_members_csv(result.data or [])
    filename = f"usuarios-{date.today().isoformat()}.csv"

    return StreamingResponse(
        io.BytesIO(content),
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
        },
    )
