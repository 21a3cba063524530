import re
from datetime import date, datetime, time

from django.utils import timezone

DATE_RE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})$')


def format_hhmm(value):
    return value.strftime('%H:%M')


def parse_calendar_date(value):
    """
    Parse "YYYY-MM-DD" from its calendar components.

    The string is never routed through a timestamp, so the resulting day does
    not shift with the server's or the caller's UTC offset.
    """
    if isinstance(value, date):
        return value
    match = DATE_RE.match(value or '')
    if not match:
        raise ValueError(f"Invalid date '{value}'. Use YYYY-MM-DD")
    year, month, day = (int(part) for part in match.groups())
    return date(year, month, day)


def day_of_week(value):
    """Weekday index with 0=Sunday .. 6=Saturday"""
    return (value.weekday() + 1) % 7


def local_datetime(day, at):
    """Aware datetime for a civil date and time in the clinic's zone"""
    return timezone.make_aware(datetime.combine(day, at))


def local_day_bounds(day):
    """[start, end] of a calendar day in the clinic's zone, end inclusive"""
    start = local_datetime(day, time.min)
    end = local_datetime(day, time.max)
    return start, end
