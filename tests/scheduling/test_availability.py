from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest

from pestcontrol.core import config
from pestcontrol.scheduling.availability import (
    APPOINTMENT_DURATION,
    SLOT_WIDTH,
    appointments_on_day,
    build_slot_grid,
    find_conflicts,
    intervals_overlap,
    parse_day,
    parse_instant,
    would_overlap,
)
from pestcontrol.scheduling.errors import InvalidInput

DAY = date(2024, 6, 1)


def _appointment(appointment_id: int, hour: int, minute: int = 0, status: str = 'confirmed', day: date = DAY):
    return SimpleNamespace(
        id=appointment_id,
        start_time=datetime(day.year, day.month, day.day, hour, minute),
        status=status,
    )


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(DAY.year, DAY.month, DAY.day, hour, minute)


def test_build_slot_grid_covers_business_hours_without_gaps() -> None:
    grid = build_slot_grid(DAY, [])
    slots = grid.slots()

    assert list(grid.hours) == list(range(8, 18))
    assert all(len(hour_slots) == 4 for hour_slots in grid.hours.values())
    assert len(slots) == 40
    assert slots[0].start == _at(8, 0)
    assert slots[-1].end == _at(18, 0)
    for previous, current in zip(slots, slots[1:]):
        assert previous.end == current.start
    assert all(slot.end - slot.start == SLOT_WIDTH for slot in slots)
    assert all(slot.is_available and slot.is_bookable for slot in slots)


def test_build_slot_grid_ignores_time_of_day_of_target() -> None:
    assert build_slot_grid(datetime(2024, 6, 1, 16, 30), []) == build_slot_grid(DAY, [])


def test_slot_containing_start_is_occupied_by_appointment() -> None:
    grid = build_slot_grid(DAY, [_appointment(1, 10, 0), _appointment(2, 14, 5)])

    assert grid.slot_for(_at(10, 0)).appointment_id == 1
    assert grid.slot_for(_at(14, 5)).start == _at(14, 0)
    assert grid.slot_for(_at(14, 5)).appointment_id == 2
    assert not grid.slot_for(_at(14, 5)).is_available


def test_appointment_occupies_every_slot_of_its_hour() -> None:
    grid = build_slot_grid(DAY, [_appointment(1, 10, 0)])

    occupied = [slot.start for slot in grid.slots() if not slot.is_available]

    assert occupied == [_at(10, 0), _at(10, 15), _at(10, 30), _at(10, 45)]
    assert grid.slot_for(_at(11, 0)).is_available


def test_cancelling_frees_previously_occupied_slot() -> None:
    appointment = _appointment(1, 10, 0)
    assert not build_slot_grid(DAY, [appointment]).slot_for(_at(10, 0)).is_available

    appointment.status = 'cancelled'
    slot = build_slot_grid(DAY, [appointment]).slot_for(_at(10, 0))

    assert slot.is_available
    assert slot.appointment_id is None


def test_build_slot_grid_ignores_other_days() -> None:
    grid = build_slot_grid(DAY, [_appointment(1, 10, 0, day=date(2024, 6, 2))])

    assert len(grid.available_slots()) == 40


def test_shared_start_picks_lowest_id() -> None:
    grid = build_slot_grid(DAY, [_appointment(7, 9, 0), _appointment(3, 9, 0)])

    assert grid.slot_for(_at(9, 0)).appointment_id == 3


def test_appointment_starting_in_slot_wins_over_one_running_through_it() -> None:
    grid = build_slot_grid(DAY, [_appointment(1, 10, 0), _appointment(2, 10, 30)])

    assert grid.slot_for(_at(10, 15)).appointment_id == 1
    assert grid.slot_for(_at(10, 30)).appointment_id == 2
    assert grid.slot_for(_at(11, 15)).appointment_id == 2


def test_free_slot_is_not_bookable_when_hour_would_run_into_next_visit() -> None:
    grid = build_slot_grid(DAY, [_appointment(1, 11, 0)])

    assert grid.slot_for(_at(10, 0)).is_bookable
    slot = grid.slot_for(_at(10, 15))
    assert slot.is_available
    assert not slot.is_bookable


def test_build_slot_grid_is_idempotent() -> None:
    appointments = [_appointment(1, 9, 30), _appointment(2, 13, 0), _appointment(3, 15, 0, status='cancelled')]

    assert build_slot_grid(DAY, appointments) == build_slot_grid(DAY, appointments)


@pytest.mark.parametrize(
    ('hour', 'minute', 'expected'),
    [
        (10, 0, True),
        (11, 0, False),
        (9, 30, True),
        (8, 0, False),
        (9, 0, False),
        (10, 45, True),
        (10, 15, True),
        (9, 1, True),
        (10, 59, True),
    ],
)
def test_would_overlap_against_ten_oclock_visit(hour: int, minute: int, expected: bool) -> None:
    assert would_overlap(_at(hour, minute), [_appointment(1, 10, 0)]) is expected


def test_would_overlap_ignores_cancelled_appointments() -> None:
    existing = [_appointment(1, 10, 0, status='cancelled')]

    assert would_overlap(datetime(2024, 6, 1, 10, 0), existing) is False
    assert would_overlap(datetime(2024, 6, 1, 10, 30), existing) is False


def test_would_overlap_accepts_iso_strings() -> None:
    existing = [_appointment(1, 10, 0)]

    assert would_overlap('2024-06-01T10:45', existing) is True
    assert would_overlap('2024-06-01T11:00', existing) is False


def test_would_overlap_only_considers_same_day() -> None:
    existing = [_appointment(1, 10, 0, day=date(2024, 6, 2))]

    assert would_overlap(_at(10, 0), existing) is False


def test_would_overlap_can_exclude_the_appointment_being_moved() -> None:
    existing = [_appointment(1, 10, 0), _appointment(2, 13, 0)]

    assert would_overlap(_at(10, 30), existing, exclude_id=1) is False
    assert would_overlap(_at(12, 30), existing, exclude_id=1) is True


def test_would_overlap_rejects_mismatched_day() -> None:
    with pytest.raises(InvalidInput):
        would_overlap(_at(10, 0), [], day=date(2024, 6, 2))


def test_find_conflicts_returns_blocking_appointments_in_order() -> None:
    existing = [_appointment(4, 11, 0), _appointment(2, 10, 0), _appointment(3, 13, 0)]

    conflicts = find_conflicts(_at(10, 30), existing, day=DAY)

    assert [appointment.id for appointment in conflicts] == [2, 4]


def test_intervals_overlap_treats_touching_endpoints_as_disjoint() -> None:
    start = _at(10, 0)

    assert not intervals_overlap(start, start + APPOINTMENT_DURATION, start + APPOINTMENT_DURATION, start + 2 * APPOINTMENT_DURATION)
    assert intervals_overlap(start, start + APPOINTMENT_DURATION, start + timedelta(minutes=15), start + timedelta(minutes=30))


def test_appointments_on_day_orders_and_skips_cancelled() -> None:
    existing = [_appointment(3, 15, 0), _appointment(1, 9, 0, status='cancelled'), _appointment(2, 8, 15)]

    assert [appointment.id for appointment in appointments_on_day(DAY, existing)] == [2, 3]


def test_parse_instant_truncates_to_minute() -> None:
    assert parse_instant(datetime(2024, 6, 1, 10, 0, 42, 5)) == _at(10, 0)


def test_parse_instant_converts_aware_values_to_business_zone(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'BUSINESS_TIMEZONE', 'UTC')

    assert parse_instant('2024-06-01T12:00:00+02:00') == _at(10, 0)
    assert parse_instant('2024-06-01T10:00:00Z') == _at(10, 0)


@pytest.mark.parametrize('value', ['not a date', '2024-13-01T10:00', '', 12345, None])
def test_parse_instant_rejects_malformed_values(value) -> None:
    with pytest.raises(InvalidInput):
        parse_instant(value)


def test_parse_day_accepts_dates_datetimes_and_strings() -> None:
    assert parse_day(DAY) == DAY
    assert parse_day(_at(17, 45)) == DAY
    assert parse_day('2024-06-01') == DAY
    assert parse_day('2024-06-01T09:00') == DAY

    with pytest.raises(InvalidInput):
        parse_day('June first')
