"""
Utility helper functions
"""
from datetime import datetime
from typing import Any, Iterable, Optional

# Movement dates come from the scraper either as ISO strings or as dd/mm/yyyy.
_DATE_FORMATS = ("%d/%m/%Y", "%d/%m/%Y %H:%M", "%Y-%m-%d")


def parse_movement_date(value: Any) -> Optional[datetime]:
    """Parse a movement date, returning None for anything unparseable"""
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        return parsed.replace(tzinfo=None)
    except ValueError:
        pass

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def earliest_movement_date(movements: Optional[Iterable[Any]]) -> Optional[datetime]:
    """Oldest ``fecha`` among the movements, skipping entries without a usable date"""
    if not isinstance(movements, list):
        return None
    dates = [
        parsed
        for parsed in (
            parse_movement_date(mov.get("fecha")) for mov in movements if isinstance(mov, dict)
        )
        if parsed is not None
    ]
    return min(dates) if dates else None
