"""Calendar helpers for installment scheduling."""

import calendar
from datetime import date, datetime

from payplan.exceptions import ValidationError
from payplan.models.enums import PlanFrequency

# Months between consecutive due dates
FREQUENCY_MONTHS = {
    PlanFrequency.MONTHLY: 1,
    PlanFrequency.QUARTERLY: 3,
    PlanFrequency.BI_ANNUAL: 6,
    PlanFrequency.ANNUAL: 12,
}


def parse_date(value: date | datetime | str) -> date:
    """Parse an ISO-8601 date or timestamp into a ``date``.

    Accepts ``YYYY-MM-DD`` as well as full timestamps such as
    ``2025-01-01T00:00:00.000Z``; the time part is dropped.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Not an ISO-8601 date: {value!r}")
    text = value.strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text).date()
    except ValueError as exc:
        raise ValidationError(f"Not an ISO-8601 date: {value!r}") from exc


def add_months(start: date, months: int) -> date:
    """Shift ``start`` by ``months`` calendar months.

    The day is clamped to the last day of the target month, so
    ``add_months(date(2025, 1, 31), 1)`` is ``2025-02-28``.
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(start.day, last_day))


def due_dates(
    start: date,
    count: int,
    frequency: PlanFrequency,
    custom_dates: list[date] | None = None,
) -> list[date]:
    """Return ``count`` due dates for a schedule.

    Stepped schedules are offsets from ``start`` rather than from the previous
    due date, so end-of-month clamping does not drift.
    """
    if frequency == PlanFrequency.CUSTOM:
        if custom_dates is None or len(custom_dates) < count:
            supplied = 0 if custom_dates is None else len(custom_dates)
            raise ValidationError(
                f"Custom frequency needs {count} due dates, got {supplied}"
            )
        return list(custom_dates[:count])

    step = FREQUENCY_MONTHS[frequency]
    return [add_months(start, i * step) for i in range(count)]
