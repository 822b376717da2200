"""
Custom validators
"""
import re
import uuid
from typing import Any, Iterable, List, Optional

from causas_ledger.utils.exceptions import LedgerValidationError

_OBJECT_ID = re.compile(r'^[0-9a-fA-F]{24}$')


def canonical_ref(value: Any, field: str = "id") -> str:
    """
    Canonical string form of an external identifier (user, folder, case).

    Accepts plain strings, integers, UUIDs and Mongo-style ``{"$oid": ...}``
    wrappers. ObjectId hex and UUIDs are lower-cased so the same identifier
    always serialises the same way.
    """
    if isinstance(value, dict) and "$oid" in value:
        value = value["$oid"]
    if isinstance(value, bool) or value is None:
        raise LedgerValidationError(f"{field} is required")
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, int):
        return str(value)

    text = str(value).strip()
    if not text:
        raise LedgerValidationError(f"{field} is required")
    if _OBJECT_ID.match(text):
        return text.lower()
    try:
        return str(uuid.UUID(text))
    except ValueError:
        return text


def canonical_refs(values: Iterable[Any], field: str = "id") -> List[str]:
    """Canonicalise and de-duplicate, keeping first-seen order."""
    out: List[str] = []
    for value in values:
        ref = canonical_ref(value, field)
        if ref not in out:
            out.append(ref)
    return out


def require_text(value: Any, field: str) -> str:
    """Docket numbers and years: required, stored as trimmed strings."""
    if value is None or isinstance(value, bool):
        raise LedgerValidationError(f"{field} is required")
    text = str(value).strip()
    if not text:
        raise LedgerValidationError(f"{field} is required")
    return text


def validate_year(value: Any) -> str:
    """Filing year as a four-digit string"""
    text = require_text(value, "year")
    if not re.match(r'^\d{4}$', text):
        raise LedgerValidationError(f"Invalid year '{text}'. Expected four digits, e.g. 2024")
    return text


def parse_record_id(value: Any) -> Optional[uuid.UUID]:
    """Record ids are UUIDs; None for anything that cannot match a row."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (ValueError, AttributeError):
        return None


def coerce_bool(value: Any) -> bool:
    """Body flags arrive as JSON booleans or as "true"/"false" strings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False
