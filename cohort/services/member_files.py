"""
Import template and member export files.

Public API:
  generate_import_template_csv()       -> bytes
  generate_import_template_xlsx()      -> bytes
  export_members_csv(profiles: list)   -> bytes

Template headers are spellings the field normalizer recognizes, and the
export's headers are too, so an exported file can be edited and imported
back (already-provisioned members come back as duplicates).
"""

import csv
import io
import logging
from datetime import datetime

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Column definitions
# ---------------------------------------------------------------------------

TEMPLATE_COLUMNS = ["Nome", "Sobrenome", "Email", "Telefone", "Cargo"]

TEMPLATE_EXAMPLE_ROWS = [
    ["João", "Silva", "joao@exemplo.com", "11999999999", "member"],
    ["Maria", "Santos", "maria@exemplo.com", "11888888888", "admin"],
]

EXPORT_COLUMNS = [
    "ID",
    "Nome",
    "Sobrenome",
    "Email",
    "Telefone",
    "Cargo",
    "Ativo",
    "Data de Criação",
]

# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

_HEADER_FONT = Font(bold=True, size=11)

_HEADER_FILL = PatternFill(
    start_color="D9E1F2",
    end_color="D9E1F2",
    fill_type="solid",
)

_COLUMN_WIDTHS: dict[str, int] = {
    "Nome": 18,
    "Sobrenome": 20,
    "Email": 32,
    "Telefone": 16,
    "Cargo": 12,
}
_DEFAULT_COLUMN_WIDTH = 16


def _format_created_at(value) -> str:
    """ISO timestamp -> dd/mm/yyyy; unparseable values pass through unchanged."""
    if not value:
        return ""
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).strftime("%d/%m/%Y")
    except ValueError:
        return str(value)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def generate_import_template_csv() -> bytes:
    """Return the CSV import template (header plus two example rows)."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(TEMPLATE_COLUMNS)
    writer.writerows(TEMPLATE_EXAMPLE_ROWS)
    return buf.getvalue().encode("utf-8")


def generate_import_template_xlsx() -> bytes:
    """
    Return the .xlsx import template.

    Headers sit on row 1 because the importer reads the first row of the
    first worksheet as the header.
    """
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Usuários"

    ws.append(TEMPLATE_COLUMNS)
    for col_idx, col_name in enumerate(TEMPLATE_COLUMNS, start=1):
        cell = ws.cell(row=1, column=col_idx)
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = Alignment(horizontal="center")
        width = _COLUMN_WIDTHS.get(col_name, _DEFAULT_COLUMN_WIDTH)
        ws.column_dimensions[get_column_letter(col_idx)].width = width

    for row in TEMPLATE_EXAMPLE_ROWS:
        ws.append(row)

    # Phone column stays text
    phone_col = TEMPLATE_COLUMNS.index("Telefone") + 1
    for row_idx in range(2, ws.max_row + 1):
        ws.cell(row=row_idx, column=phone_col).number_format = "@"

    ws.freeze_panes = ws.cell(row=2, column=1)

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf.read()


def export_members_csv(profiles: list[dict]) -> bytes:
    """
    Serialize member profiles to CSV, every field quoted.

    Args:
        profiles: profiles rows (id, first_name, last_name, email, phone,
                  role, is_active, created_at).
    """
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for profile in profiles:
        writer.writerow([
            profile.get("id") or "",
            profile.get("first_name") or "",
            profile.get("last_name") or "",
            profile.get("email") or "",
            profile.get("phone") or "",
            profile.get("role") or "",
            "Sim" if profile.get("is_active") else "Não",
            _format_created_at(profile.get("created_at")),
        ])
    logger.debug("Exported %d member rows", len(profiles))
    return buf.getvalue().encode("utf-8")
