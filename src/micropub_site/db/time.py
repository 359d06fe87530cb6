"""Time utilities for persisted timestamps.

Timestamps are stored as ISO-8601 text with an explicit UTC offset so rows stay
portable across databases and readable by hand.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

# Formats accepted for client supplied timestamps besides ISO-8601.
_LEGACY_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d")


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def to_text(value: datetime) -> str:
    """Serialize a datetime for storage, in UTC so stored values sort chronologically."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def parse_timestamp(value: str, offset_seconds: int = 0) -> datetime:
    """Parse a stored or client supplied timestamp.

    Naive values are interpreted in the fixed offset ``offset_seconds`` east
    of UTC. Raises ``ValueError`` when the text is not a recognised timestamp.
    """
    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        for fmt in _LEGACY_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
        else:
            raise ValueError(f"Unrecognised timestamp: {value!r}") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone(timedelta(seconds=offset_seconds)))
    return parsed


def next_after(previous: str, now: datetime) -> datetime:
    """Return ``now`` or, if the clock has not moved past ``previous``, 1µs after it.

    A naive ``now`` is taken to be UTC.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    floor = parse_timestamp(previous) + timedelta(microseconds=1)
    return now if now >= floor else floor
