"""
Structural validation for normalized import records.
"""

from typing import Optional

from cohort.services.field_normalizer import ImportRecord

INVALID_EMAIL = "Email inválido ou ausente"
MISSING_FIRST_NAME = "Nome é obrigatório"


def validate_record(record: ImportRecord) -> Optional[str]:
    """
    Return a human-readable rejection reason, or None if the record is valid.

    Email is checked before first name, so a row missing both reports the
    email problem.
    """
    if not record.email or "@" not in record.email:
        return INVALID_EMAIL
    if not record.first_name.strip():
        return MISSING_FIRST_NAME
    return None
