from datetime import date

import pytest

from careguardian.scheduling.availability import (
    day_of_week,
    default_slots,
    iterate_slot_starts,
    normalize_slot_time,
    normalize_weekday,
    parse_time,
    resolve_slots,
)

MONDAY = date(2025, 6, 2)
SUNDAY = date(2025, 6, 1)


def test_day_of_week_counts_from_sunday() -> None:
    assert day_of_week(SUNDAY) == 0
    assert day_of_week(MONDAY) == 1
    assert day_of_week(date(2025, 6, 7)) == 6


def test_resolve_slots_for_working_day() -> None:
    slots = resolve_slots([1, 3, 5], ['09:00-10:00'], MONDAY)

    assert slots == ['09:00', '09:30']


def test_resolve_slots_returns_nothing_on_day_off() -> None:
    assert resolve_slots([1, 3, 5], ['09:00-10:00'], SUNDAY) == []


def test_empty_time_ranges_use_default_schedule() -> None:
    slots = resolve_slots([1], [], MONDAY)

    assert len(slots) == 16
    assert slots[0] == '09:00'
    assert slots[-1] == '16:30'
    assert slots == default_slots()


def test_empty_days_mean_every_day_is_available() -> None:
    assert resolve_slots([], ['14:00-15:00'], SUNDAY) == ['14:00', '14:30']
    assert resolve_slots(None, None, SUNDAY) == default_slots()


def test_ranges_are_concatenated_in_given_order_without_dedup() -> None:
    slots = resolve_slots([], ['13:00-14:00', '09:00-09:30', '13:30-14:00'], MONDAY)

    assert slots == ['13:00', '13:30', '09:00', '13:30']


def test_minutes_carry_into_next_hour() -> None:
    assert resolve_slots([], ['10:45-12:00'], MONDAY) == ['10:45', '11:15', '11:45']


@pytest.mark.parametrize('time_range', ['10:00-10:00', '12:00-09:00'])
def test_range_with_start_not_before_end_yields_nothing(time_range: str) -> None:
    assert resolve_slots([], [time_range], MONDAY) == []


def test_malformed_ranges_are_skipped() -> None:
    slots = resolve_slots([], ['morning', '25:00-26:00', None, '09:00-09:30'], MONDAY)

    assert slots == ['09:00']


def test_weekday_names_and_numeric_strings_are_accepted() -> None:
    assert resolve_slots(['Monday'], ['09:00-09:30'], MONDAY) == ['09:00']
    assert resolve_slots(['mon'], ['09:00-09:30'], MONDAY) == ['09:00']
    assert resolve_slots(['1'], ['09:00-09:30'], MONDAY) == ['09:00']
    assert resolve_slots(['tuesday', 'holiday'], ['09:00-09:30'], MONDAY) == []


@pytest.mark.parametrize(
    ('value', 'expected'),
    [(0, 0), (6, 6), (7, None), ('sun', 0), ('Saturday', 6), ('sa', None), (True, None)],
)
def test_normalize_weekday(value, expected) -> None:
    assert normalize_weekday(value) == expected


def test_iterate_slot_starts_excludes_range_end() -> None:
    assert iterate_slot_starts(parse_time('16:00'), parse_time('17:00')) == ['16:00', '16:30']


def test_normalize_slot_time_pads_hours() -> None:
    assert normalize_slot_time('9:00') == '09:00'
    assert normalize_slot_time(' 14:30 ') == '14:30'

    with pytest.raises(ValueError):
        normalize_slot_time('9am')
