"""
Tabular decoder for member import files.

Turns an uploaded .csv (comma or semicolon delimited) or .xlsx file into an
ordered list of DecodedRow(line_number, fields), one per non-blank data row.

line_number is the physical line (worksheet row for .xlsx) on which the row
starts in the original file, with the header on line 1. Blank lines are
dropped but still counted, so error messages point at the right row.

Public API:
  decode_upload(file_content, filename) -> list[DecodedRow]
  decode_text(text)                     -> list[DecodedRow]
"""

import csv
import io
import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class DecodeError(Exception):
    """Raised when an upload cannot be decoded into rows."""
    def __init__(self, message: str, error_code: str):
        super().__init__(message)
        self.error_code = error_code
        self.message = message


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class DecodedRow:
    """One data row: its original line number and header -> value map."""
    line_number: int
    fields: dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_TEXT_ENCODINGS = ["utf-8-sig", "windows-1252", "latin-1"]

_XLSX_EXTENSIONS = {".xlsx"}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _get_extension(filename: str) -> str:
    """Return lower-case file extension including the dot."""
    dot = filename.rfind(".")
    if dot == -1:
        return ""
    return filename[dot:].lower()


def _cell_to_str(value) -> str:
    """Convert a cell value to a trimmed string; whole floats lose the '.0'."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _detect_delimiter(header_line: str) -> str:
    """
    Pick ',' or ';' for the whole file from the header line.

    Only characters outside double quotes are counted. Comma wins a tie.
    """
    commas = 0
    semicolons = 0
    in_quotes = False
    for ch in header_line:
        if ch == '"':
            in_quotes = not in_quotes
        elif not in_quotes:
            if ch == ",":
                commas += 1
            elif ch == ";":
                semicolons += 1
    return ";" if semicolons > commas else ","


def _first_line(text: str) -> str:
    for line in io.StringIO(text, newline=""):
        return line
    return ""


def _build_rows(header: list, numbered_rows) -> list[DecodedRow]:
    """Zip each (line_number, cells) pair with the normalized header."""
    headers = [_cell_to_str(h).lower() for h in header]
    rows: list[DecodedRow] = []
    for line_number, cells in numbered_rows:
        values = [_cell_to_str(c) for c in cells]
        if not any(values):
            continue
        fields = {}
        for idx, name in enumerate(headers):
            if not name:
                continue
            fields[name] = values[idx] if idx < len(values) else ""
        rows.append(DecodedRow(line_number=line_number, fields=fields))
    return rows


# ---------------------------------------------------------------------------
# Delimited text
# ---------------------------------------------------------------------------

def _iter_csv_records(reader):
    """
    Yield (start_line, cells) for each record produced by a csv.reader.

    reader.line_num counts physical lines consumed so far, so a record starts
    one line after wherever the previous record ended. Quoted fields spanning
    several lines therefore keep later rows aligned with the source file.
    """
    next_start = reader.line_num + 1
    for cells in reader:
        yield next_start, cells
        next_start = reader.line_num + 1


def decode_text(text: str) -> list[DecodedRow]:
    """
    Decode delimited text (comma or semicolon) into data rows.

    Returns an empty list when the payload has no data rows.

    Raises:
        DecodeError: If the text is not valid delimited data.
    """
    if not text or not text.strip():
        return []

    text = text.lstrip("\ufeff")
    delimiter = _detect_delimiter(_first_line(text))
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)

    try:
        header = next(reader, None)
        if header is None:
            return []
        rows = _build_rows(header, _iter_csv_records(reader))
    except csv.Error as e:
        raise DecodeError(f"Could not read CSV file: {e}", "parse_failed")

    logger.debug("Decoded %d rows (delimiter %r)", len(rows), delimiter)
    return rows


def _decode_bytes(file_content: bytes) -> str:
    """Decode raw bytes to text with encoding fallback."""
    for encoding in _TEXT_ENCODINGS:
        try:
            return file_content.decode(encoding)
        except UnicodeDecodeError:
            continue

    raise DecodeError(
        "CSV file could not be decoded with any supported encoding",
        "parse_failed",
    )


# ---------------------------------------------------------------------------
# xlsx
# ---------------------------------------------------------------------------

def _decode_xlsx(file_content: bytes) -> list[DecodedRow]:
    """Decode the first worksheet of an .xlsx workbook. Row 1 is the header."""
    import openpyxl

    try:
        wb = openpyxl.load_workbook(io.BytesIO(file_content), data_only=True)
    except Exception as e:
        raise DecodeError(f"Could not parse xlsx file: {e}", "parse_failed")

    ws = wb.worksheets[0]
    numbered = enumerate(ws.iter_rows(values_only=True), start=1)
    first = next(numbered, None)
    if first is None:
        return []
    _, header = first
    return _build_rows(list(header), ((n, list(cells)) for n, cells in numbered))


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def decode_upload(file_content: bytes, filename: str) -> list[DecodedRow]:
    """
    Decode an uploaded import file.

    Args:
        file_content: Raw bytes of the uploaded file.
        filename: Original filename; ".xlsx" selects the workbook reader,
                  anything else is read as delimited text.

    Returns:
        Data rows in file order.

    Raises:
        DecodeError: If the file cannot be decoded.
    """
    if _get_extension(filename or "") in _XLSX_EXTENSIONS:
        return _decode_xlsx(file_content)
    return decode_text(_decode_bytes(file_content))
