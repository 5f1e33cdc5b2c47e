"""
Prefixed entity identifiers.

Every primary key starts with a two digit prefix naming its entity,
followed by a zero padded sequence: doctor 75000001, patient 95000001, ...
"""

import re
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

SEQUENCE_WIDTH = 6

ID_PREFIXES = {
    "DOCTOR": 75,
    "PATIENT": 95,
    "APPOINTMENT": 55,
    "MEDICAL_RECORD": 33,
    "USER": 45,
    "ROLE_PERMISSION": 65,
    "DOCTOR_SCHEDULE": 77,
    "INVOICE": 88,
}

_ENTITY_TYPES = {prefix: name.lower() for name, prefix in ID_PREFIXES.items()}


def make_id(prefix: int, sequence: int) -> int:
    return int(f"{prefix}{sequence:0{SEQUENCE_WIDTH}d}")


def extract_prefix(entity_id: int) -> int:
    text = str(entity_id)
    if len(text) < 2:
        return 0
    return int(text[:2])


def extract_sequence(entity_id: int) -> int:
    text = str(entity_id)
    if len(text) <= 2:
        return 0
    return int(text[2:])


def has_prefix(entity_id: int, prefix: int) -> bool:
    return extract_prefix(entity_id) == prefix


def is_valid_id(entity_id: int) -> bool:
    return extract_prefix(entity_id) in _ENTITY_TYPES


def get_entity_type(entity_id: int) -> Optional[str]:
    return _ENTITY_TYPES.get(extract_prefix(entity_id))


def format_id(entity_id: int) -> str:
    """75000001 -> '75-0000-01'"""
    text = str(entity_id)
    if len(text) <= 2:
        return text
    sequence = re.sub(r"(\d{4})(?=\d)", r"\1-", text[2:])
    return f"{text[:2]}-{sequence}"


def parse_id(formatted_id: str) -> int:
    cleaned = re.sub(r"\D", "", formatted_id)
    if not cleaned:
        raise ValueError(f"No digits in id: {formatted_id!r}")
    return int(cleaned)


def next_id(db: Session, column, prefix: int) -> int:
    """
    Next free id for ``prefix`` in the table owning ``column``.

    Two concurrent inserts can compute the same value; the primary key
    rejects the second one.
    """
    lower = make_id(prefix, 0)
    upper = make_id(prefix, 10 ** SEQUENCE_WIDTH - 1)
    current = db.query(func.max(column)).filter(
        column >= lower,
        column <= upper
    ).scalar()
    if current is None:
        return make_id(prefix, 1)
    return int(current) + 1


def invoice_number_for(invoice_id: int, year: int) -> str:
    return f"INV-{year}-{extract_sequence(invoice_id):05d}"
