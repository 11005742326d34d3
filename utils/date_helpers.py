import calendar
import time
from datetime import date, datetime, timedelta, timezone, tzinfo
from utils.constants import MINUTE_MS

# ── Grouping key / title patterns ─────────────────────────────────────────────

DATE_KEY_FORMAT = "%Y-%m-%d"
DATE_TITLE_FORMAT = "%A, %b"
HOUR_KEY_FORMAT = "%Y-%m-%d-%H"
MONTH_KEY_FORMAT = "%Y-%m"
MONTH_TITLE_FORMAT = "%B %Y"
YEAR_FORMAT = "%Y"


def now_ms() -> int:
    """Milliseconds since the epoch; the engine's only wall-clock read."""
    return time.time_ns() // 1_000_000


def to_ms(dt: datetime) -> int:
    """Epoch milliseconds for dt. Naive datetimes are treated as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = dt - datetime(1970, 1, 1, tzinfo=timezone.utc)
    return delta // timedelta(milliseconds=1)


def from_ms(ms: int) -> datetime:
    return datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=ms)


def utc_now() -> datetime:
    return from_ms(now_ms())


def minute_of(ms: int) -> int:
    return ms // MINUTE_MS


def minute_to_datetime(minute: int) -> datetime:
    """Start instant of a minute number produced by the minute ticker."""
    return from_ms(minute * MINUTE_MS)


def ms_until_next_minute(ms: int) -> int:
    return MINUTE_MS - (ms % MINUTE_MS)


def localize(dt: datetime, tz: tzinfo | None = None) -> datetime:
    """Convert an aware instant to tz (system local time when tz is None)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz)


def start_of_week(d: datetime) -> datetime:
    """Monday 00:00 of the ISO week containing d (same tzinfo as d)."""
    monday = d - timedelta(days=d.weekday())
    return monday.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(d: datetime) -> datetime:
    return d.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def end_of_month(d: datetime) -> datetime:
    last_day = calendar.monthrange(d.year, d.month)[1]
    return d.replace(day=last_day, hour=23, minute=59, second=59, microsecond=999000)


# ── Section keys and titles ───────────────────────────────────────────────────

def format_date_key(d: datetime | date) -> str:
    return d.strftime(DATE_KEY_FORMAT)


def format_hour_key(d: datetime) -> str:
    return d.strftime(HOUR_KEY_FORMAT)


def format_hour_title(d: datetime) -> str:
    """e.g. 'Feb 15, 2025 2 PM'."""
    hour = d.hour % 12 or 12
    suffix = "AM" if d.hour < 12 else "PM"
    return f"{d.strftime('%b')} {d.day}, {d.year} {hour} {suffix}"


def format_week_key(week_start: datetime) -> str:
    """ISO week key, e.g. '2025-W07'."""
    iso_year, iso_week, _ = week_start.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def format_week_title(week_start: datetime) -> str:
    return f"Week of {week_start.strftime('%b')} {week_start.day}"


def format_month_key(d: datetime) -> str:
    return d.strftime(MONTH_KEY_FORMAT)


def format_month_title(d: datetime) -> str:
    return d.strftime(MONTH_TITLE_FORMAT)


def format_year(d: datetime) -> str:
    return d.strftime(YEAR_FORMAT)


def format_section_date_title(d: datetime, today: date) -> str:
    """'Today' for the current day, otherwise e.g. 'Wednesday, Feb 5'."""
    if d.date() == today:
        return "Today"
    return f"{d.strftime(DATE_TITLE_FORMAT)} {d.day}"


def format_display_datetime(d: datetime, tz: tzinfo | None = None) -> str:
    local = localize(d, tz)
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{local.strftime('%b')} {local.day} {local.year} {hour}:{local.minute:02d} {suffix}"


INPUT_DATETIME_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%d")


def parse_local_datetime(value: str, tz: tzinfo | None = None) -> datetime | None:
    """Parse 'YYYY-MM-DD HH:MM' (or a bare date) typed in local time; returns UTC."""
    text = (value or "").strip()
    for fmt in INPUT_DATETIME_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        local = parsed.replace(tzinfo=tz) if tz is not None else parsed.astimezone()
        return local.astimezone(timezone.utc)
    return None


def format_input_datetime(d: datetime, tz: tzinfo | None = None) -> str:
    return localize(d, tz).strftime(INPUT_DATETIME_FORMATS[0])
