"""Parameter parsing for tool inputs."""

from datetime import date, datetime
from typing import List, Optional, Union

from immich_mcp.errors import ValidationError


def parse_id_list(value: Optional[str]) -> List[str]:
    """Split a comma-separated id string, dropping blanks.

    "a, b,,c" -> ["a", "b", "c"]; None or whitespace -> [].
    """
    if not value or not value.strip():
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def require_ids(value: Optional[str], what: str = "asset") -> List[str]:
    """Like parse_id_list, but an empty result is a validation error."""
    ids = parse_id_list(value)
    if not ids:
        raise ValidationError(f"No valid {what} IDs provided")
    return ids


def require_text(value: Optional[str], what: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{what} is required")
    return value.strip()


def parse_datetime(value: Optional[str], field: str = "date") -> Optional[datetime]:
    """Parse an ISO-8601 date or datetime; a trailing 'Z' is accepted."""
    if not value or not value.strip():
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(
            f"Invalid {field} '{value}'. Use ISO-8601, e.g. '2025-01-15' or '2025-01-15T10:00:00Z'."
        ) from None


def parse_date(value: Optional[str], field: str = "date") -> Optional[date]:
    parsed = parse_datetime(value, field)
    return parsed.date() if parsed else None


def iso(value: Optional[Union[date, datetime]]) -> Optional[str]:
    return value.isoformat() if value else None
