"""Turn a doctor's weekly availability pattern into slot start times."""

import logging
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta

logger = logging.getLogger(__name__)

SLOT_INCREMENT_MINUTES = 30
DEFAULT_OPEN_TIME = time(9, 0)
DEFAULT_CLOSE_TIME = time(17, 0)
TIME_FORMAT = '%H:%M'

WEEKDAY_NAMES = {
    'sunday': 0,
    'monday': 1,
    'tuesday': 2,
    'wednesday': 3,
    'thursday': 4,
    'friday': 5,
    'saturday': 6,
}


def day_of_week(target_date: date) -> int:
    """Weekday number with Sunday as 0 and Saturday as 6."""
    return target_date.isoweekday() % 7


def parse_time(value: str) -> time:
    return datetime.strptime(value.strip(), TIME_FORMAT).time()


def format_time(value: time) -> str:
    return value.strftime(TIME_FORMAT)


def normalize_weekday(value) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if 0 <= value <= 6 else None

    token = str(value).strip().lower()
    if token.isdigit():
        number = int(token)
        return number if 0 <= number <= 6 else None

    for name, number in WEEKDAY_NAMES.items():
        if len(token) >= 3 and name.startswith(token):
            return number
    return None


def parse_time_range(value: str) -> tuple[time, time]:
    if not isinstance(value, str):
        raise ValueError(f'Time range {value!r} must be a string.')
    start_text, separator, end_text = value.partition('-')
    if not separator:
        raise ValueError(f'Time range {value!r} must look like HH:MM-HH:MM.')
    return parse_time(start_text), parse_time(end_text)


def iterate_slot_starts(start: time, end: time) -> list[str]:
    slots: list[str] = []
    anchor = date.min
    current = datetime.combine(anchor, start)
    range_end = datetime.combine(anchor, end)

    while current < range_end:
        slots.append(format_time(current.time()))
        current += timedelta(minutes=SLOT_INCREMENT_MINUTES)

    return slots


def default_slots() -> list[str]:
    return iterate_slot_starts(DEFAULT_OPEN_TIME, DEFAULT_CLOSE_TIME)


def works_on(available_days: Iterable | None, target_date: date) -> bool:
    if not available_days:
        return True

    working_days = set()
    for value in available_days:
        weekday = normalize_weekday(value)
        if weekday is None:
            logger.warning('Ignoring unrecognised weekday %r in availability pattern', value)
            continue
        working_days.add(weekday)

    return day_of_week(target_date) in working_days


def resolve_slots(
    available_days: Iterable | None,
    available_time_ranges: Iterable[str] | None,
    target_date: date,
) -> list[str]:
    """Candidate slot start times (``HH:MM``) for ``target_date``.

    An empty ``available_days`` means the doctor works every day, and empty
    ``available_time_ranges`` means the default 09:00-17:00 schedule. Ranges
    are expanded in the order given and are not de-duplicated, so overlapping
    ranges produce repeated slots.
    """
    if not works_on(available_days, target_date):
        return []

    if not available_time_ranges:
        return default_slots()

    slots: list[str] = []
    for time_range in available_time_ranges:
        try:
            start, end = parse_time_range(time_range)
        except ValueError:
            logger.warning('Skipping malformed availability range %r', time_range)
            continue
        slots.extend(iterate_slot_starts(start, end))

    return slots


def normalize_slot_time(value: str) -> str:
    """``"9:00"`` -> ``"09:00"``; raises ``ValueError`` for anything else."""
    return format_time(parse_time(value))
