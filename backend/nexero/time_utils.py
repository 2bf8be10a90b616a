# Overview: Datetime helpers; UTC-naive storage, ISO parsing for API filters and receipt formatting.

from __future__ import annotations

from datetime import datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as stored in the database (UTC, tzinfo stripped)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str], *, end_of_day: bool = False) -> Optional[datetime]:
    """
    ISO-8601 string -> UTC-naive datetime. Blank -> None.

    Offsets ("Z", "-03:00") are converted to UTC; naive values are taken as
    UTC already. A bare date ("2026-10-19") means midnight, or 23:59:59.999999
    with end_of_day=True so it can close an inclusive range.

    Raises ValueError on malformed input.
    """
    if value is None:
        return None
    raw = value.strip()
    if not raw:
        return None

    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"

    parsed = datetime.fromisoformat(raw)
    if end_of_day and len(raw) == 10:
        parsed = datetime.combine(parsed.date(), time.max)

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_date_range(raw_from: Optional[str], raw_to: Optional[str]) -> tuple[Optional[datetime], Optional[datetime]]:
    """Inclusive (from, to) filter bounds. Raises ValueError if from is after to."""
    date_from = parse_iso_datetime(raw_from)
    date_to = parse_iso_datetime(raw_to, end_of_day=True)
    if date_from and date_to and date_from > date_to:
        raise ValueError("from is after to")
    return date_from, date_to


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize as 'YYYY-MM-DDTHH:MM:SSZ'; naive values are UTC."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"


def format_br_date(dt: datetime) -> str:
    """dd/mm/yyyy, as printed on receipts."""
    return dt.strftime("%d/%m/%Y")


def format_br_time(dt: datetime) -> str:
    """HH:MM, as printed on receipts."""
    return dt.strftime("%H:%M")
