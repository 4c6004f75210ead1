from datetime import datetime
from dateutil.relativedelta import relativedelta
import pytz

UTC = pytz.UTC


def get_utc_now():
    """Get current datetime in UTC"""
    return datetime.now(UTC)


def to_utc(dt):
    """Convert a datetime object to UTC, treating naive values as UTC"""
    if dt.tzinfo is None:
        return UTC.localize(dt)
    return dt.astimezone(UTC)


def month_key(dt):
    """Bucket key for monthly series, e.g. '2024-03-01'"""
    return f"{dt.year}-{dt.month:02d}-01"


def months_ago(months, now=None):
    return (now or get_utc_now()) - relativedelta(months=months)


def locale_date_string(dt=None):
    """Short en-US date, the form browsers print for toLocaleDateString()"""
    dt = dt or get_utc_now()
    return f"{dt.month}/{dt.day}/{dt.year}"


def parse_date(date_str, end_of_day=False):
    """
    Parse a 'YYYY-MM-DD' (or full ISO 8601) string into an aware UTC datetime.

    Args:
        date_str: Date string from a query parameter
        end_of_day: Push a bare date to 23:59:59 so the bound is inclusive

    Returns:
        datetime: Timezone-aware datetime object in UTC
    """
    try:
        if len(date_str) == 10:
            dt = datetime.strptime(date_str, '%Y-%m-%d')
            if end_of_day:
                dt = dt.replace(hour=23, minute=59, second=59)
        else:
            dt = datetime.fromisoformat(date_str.replace('Z', '+00:00'))
        return to_utc(dt)
    except ValueError as e:
        raise ValueError(f"Invalid date format: {e}")


def isoformat(dt):
    return to_utc(dt).isoformat() if dt else None
