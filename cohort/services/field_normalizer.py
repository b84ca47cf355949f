"""
Field normalizer for member import rows.

Import files come from many sources (our own export, hand-made sheets,
other platforms), so the same attribute shows up under different headers.
FIELD_ALIASES lists, per canonical field, every accepted header spelling in
priority order; the first alias holding a non-empty value wins.

Header keys arrive already lower-cased and trimmed from the tabular decoder,
so aliases are listed in lower case.

The normalizer is permissive: it never rejects a row. Structural checks live
in record_validator and role coercion in invitation_issuer.
"""

from dataclasses import dataclass, field
from typing import Optional

from cohort.services.tabular_decoder import DecodedRow

DEFAULT_ROLE = "member"

FIELD_ALIASES: list[tuple[str, list[str]]] = [
    ("email", ["email", "e-mail", "e_mail", "endereco_email"]),
    ("first_name", ["nome", "first_name", "firstname", "primeiro_nome", "first name", "name"]),
    ("last_name", ["sobrenome", "last_name", "lastname", "ultimo_nome", "last name", "surname"]),
    ("phone", ["telefone", "phone", "celular", "whatsapp"]),
    ("role", ["cargo", "role", "funcao", "função"]),
]


@dataclass
class ImportRecord:
    """A decoded row plus its canonical fields. Lives for one import run."""
    line_number: int
    raw: dict[str, str] = field(default_factory=dict)
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    role: str = DEFAULT_ROLE


def lookup_field(raw: dict[str, str], aliases: list[str]) -> Optional[str]:
    """Return the first non-empty (trimmed) value among aliases, or None."""
    for alias in aliases:
        value = raw.get(alias)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            return value
    return None


def normalize_row(row: DecodedRow) -> ImportRecord:
    """Resolve a decoded row's aliased headers into an ImportRecord."""
    values = {
        canonical: lookup_field(row.fields, aliases) or ""
        for canonical, aliases in FIELD_ALIASES
    }
    return ImportRecord(
        line_number=row.line_number,
        raw=dict(row.fields),
        email=values["email"],
        first_name=values["first_name"],
        last_name=values["last_name"],
        phone=values["phone"],
        role=(values["role"] or DEFAULT_ROLE).lower(),
    )
