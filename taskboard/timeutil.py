from datetime import datetime, timedelta, timezone
import time

DAY_MS = 24 * 60 * 60 * 1000

_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def to_datetime(timestamp_ms: int) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)


def start_of_day_ms(timestamp_ms: int) -> int:
    """Midnight (UTC) of the day containing ``timestamp_ms``."""
    dt = to_datetime(timestamp_ms)
    midnight = datetime(dt.year, dt.month, dt.day, tzinfo=timezone.utc)
    return int(midnight.timestamp() * 1000)


def js_day_of_week(timestamp_ms: int) -> int:
    """Day of week with Sunday as 0, matching JavaScript's ``Date.getDay``."""
    return (to_datetime(timestamp_ms).weekday() + 1) % 7


def parse_iso_ms(value: str) -> int:
    """Parse an ISO date or datetime string to epoch ms.

    Date-only strings and strings without an offset are treated as UTC.
    Raises ValueError on unparsable input.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def format_date(timestamp_ms: int) -> str:
    """Render a timestamp as e.g. ``Jan 5, 2026`` (en-US short month, UTC)."""
    dt = to_datetime(timestamp_ms)
    return f"{_MONTHS[dt.month - 1]} {dt.day}, {dt.year}"


def seconds_until(hour: int, minute: int, now: datetime) -> float:
    """Seconds from ``now`` until the next ``hour:minute`` UTC."""
    now = now.astimezone(timezone.utc)
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()
