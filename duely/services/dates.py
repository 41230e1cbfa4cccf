"""Date helpers for billing schedules and due-date display."""

from datetime import date, datetime, timedelta

from dateutil.relativedelta import relativedelta


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def get_days_until(target: date | datetime, now: datetime | None = None) -> int:
    """Whole days from the start of today to the start of ``target``.

    Negative when ``target`` is in the past.
    """
    today = _as_date(now or datetime.utcnow())
    return (_as_date(target) - today).days


def is_due_today(target: date | datetime, now: datetime | None = None) -> bool:
    return get_days_until(target, now) == 0


def is_overdue(target: date | datetime, now: datetime | None = None) -> bool:
    """True when ``target`` falls on a day before today."""
    return get_days_until(target, now) < 0


def is_within_days(target: date | datetime, days: int, now: datetime | None = None) -> bool:
    """True when ``target`` is today or within the next ``days`` days."""
    days_until = get_days_until(target, now)
    return 0 <= days_until <= days


def calculate_next_billing_date(current: datetime, frequency: str) -> datetime:
    """Advance a billing date by one period of ``frequency``.

    Month arithmetic clamps to the last day of shorter months
    (Jan 31 + 1 month is Feb 28/29).
    """
    frequency = frequency.lower()
    if frequency == "monthly":
        return current + relativedelta(months=1)
    if frequency in ("yearly", "annual"):
        return current + relativedelta(years=1)
    if frequency == "quarterly":
        return current + relativedelta(months=3)
    if frequency == "weekly":
        return current + timedelta(days=7)
    if frequency == "daily":
        return current + timedelta(days=1)
    return current + relativedelta(months=1)


def relative_due_string(target: date | datetime, now: datetime | None = None) -> str:
    """Human readable distance to a due date, e.g. ``Due in 3 days``."""
    days_until = get_days_until(target, now)

    if days_until == 0:
        return "Due today"
    if days_until == 1:
        return "Due tomorrow"
    if days_until > 1:
        return f"Due in {days_until} days"
    if days_until == -1:
        return "Overdue by 1 day"
    return f"Overdue by {abs(days_until)} days"


def urgency_level(target: date | datetime, now: datetime | None = None) -> str:
    """Classify a due date as ``overdue``, ``high``, ``medium`` or ``low``."""
    days_until = get_days_until(target, now)

    if days_until < 0:
        return "overdue"
    if days_until <= 3:
        return "high"
    if days_until <= 7:
        return "medium"
    return "low"


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(value: datetime) -> datetime:
    return value.replace(hour=23, minute=59, second=59, microsecond=999999)


def start_of_month(value: datetime) -> datetime:
    return start_of_day(value).replace(day=1)


def start_of_week(value: datetime) -> datetime:
    """Sunday-based start of the week containing ``value``."""
    days_since_sunday = (value.weekday() + 1) % 7
    return start_of_day(value) - timedelta(days=days_since_sunday)


def format_month(value: datetime) -> str:
    """``MMM yyyy`` label, e.g. ``Jan 2026``."""
    return value.strftime("%b %Y")


def format_day(value: datetime) -> str:
    """``MMM dd`` label, e.g. ``Jan 05``."""
    return value.strftime("%b %d")
