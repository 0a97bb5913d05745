import math
import re
import unicodedata
from datetime import UTC, date, datetime, timedelta


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC timezone if naive, return as-is if already aware."""
    return dt if dt.tzinfo else dt.replace(tzinfo=UTC)


def normalize_name(name: str) -> str:
    """NFC-normalize and lowercase a character name for matching."""
    return unicodedata.normalize("NFC", name).lower()


def realm_slug(realm: str) -> str:
    """Lowercase, hyphenated realm slug ('Tarren Mill' -> 'tarren-mill').

    Surrounding whitespace is ignored: ' Tarren Mill ' gives the same slug.
    """
    return re.sub(r"\s+", "-", realm.strip().lower())


def round_half_up(value: float, digits: int = 0):
    """Round halves upward like JavaScript's ``Math.round`` (2.5 -> 3, -2.5 -> -2)."""
    scale = 10 ** digits
    rounded = math.floor(value * scale + 0.5)
    return rounded if digits == 0 else rounded / scale


def ms_to_datetime(epoch_ms: int) -> datetime:
    return datetime.fromtimestamp(epoch_ms / 1000, tz=UTC)


def raid_week_start(day: date) -> date:
    """Return the Thursday that opens the raid week containing ``day``.

    Raid weeks run Thursday through Wednesday (EU reset).
    """
    days_since_sunday = (day.weekday() + 1) % 7
    return day - timedelta(days=(days_since_sunday + 3) % 7)
