"""Slot grid and overlap checks for the appointment calendar.

Every function here is a pure computation over a snapshot of appointments.
Nothing is cached: callers pass the latest appointments on each call, and the
same inputs always produce the same result.

Appointments are any objects exposing ``id``, ``start_time`` and ``status``
(the SQLAlchemy ``Appointment`` model qualifies).
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Iterable, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pestcontrol.core import config
from pestcontrol.scheduling.errors import InvalidInput

BUSINESS_OPEN_HOUR = 8
BUSINESS_CLOSE_HOUR = 18
SLOT_MINUTES = 15
SLOTS_PER_HOUR = 60 // SLOT_MINUTES
APPOINTMENT_DURATION_MINUTES = 60
CANCELLED_STATUS = 'cancelled'

SLOT_WIDTH = timedelta(minutes=SLOT_MINUTES)
APPOINTMENT_DURATION = timedelta(minutes=APPOINTMENT_DURATION_MINUTES)


@dataclass(frozen=True)
class TimeSlot:
    """One 15-minute bucket of the business day."""

    start: datetime
    end: datetime
    is_available: bool
    appointment_id: int | None = None
    # False when a full-length appointment starting here would overlap another one.
    is_bookable: bool = True


@dataclass(frozen=True)
class SlotGrid:
    """Slots for a single day keyed by business hour, in ascending order."""

    day: date
    hours: Mapping[int, tuple[TimeSlot, ...]]

    def slots(self) -> list[TimeSlot]:
        return [slot for hour_slots in self.hours.values() for slot in hour_slots]

    def available_slots(self) -> list[TimeSlot]:
        return [slot for slot in self.slots() if slot.is_available]

    def slot_for(self, instant: datetime) -> TimeSlot | None:
        """Return the slot containing ``instant``, or None outside business hours."""
        instant = parse_instant(instant)
        if instant.date() != self.day:
            return None
        hour_slots = self.hours.get(instant.hour)
        if hour_slots is None:
            return None
        return hour_slots[instant.minute // SLOT_MINUTES]


def _business_zone() -> tzinfo:
    if config.BUSINESS_TIMEZONE.strip().upper() == 'UTC':
        return timezone.utc
    try:
        return ZoneInfo(config.BUSINESS_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidInput(f'Unknown business time zone: {config.BUSINESS_TIMEZONE!r}') from exc


def business_now() -> datetime:
    """Current wall-clock time in the business time zone, as a naive datetime."""
    return datetime.now(_business_zone()).replace(tzinfo=None)


def business_today() -> date:
    return business_now().date()


def parse_instant(value: Any) -> datetime:
    """Normalize ``value`` to a naive, minute-precision datetime.

    Accepts datetimes and ISO-8601 strings. Aware values are converted to the
    business time zone before the zone is dropped.
    """
    if isinstance(value, datetime):
        instant = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(('Z', 'z')):
            text = f'{text[:-1]}+00:00'
        try:
            instant = datetime.fromisoformat(text)
        except ValueError as exc:
            raise InvalidInput(f'Invalid date-time: {value!r}') from exc
    else:
        raise InvalidInput(f'Invalid date-time: {value!r}')

    if instant.tzinfo is not None:
        instant = instant.astimezone(_business_zone()).replace(tzinfo=None)

    return instant.replace(second=0, microsecond=0)


def parse_day(value: Any) -> date:
    """Return the calendar day of ``value``; any time-of-day part is ignored."""
    if isinstance(value, datetime):
        return parse_instant(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            return parse_instant(value).date()
    raise InvalidInput(f'Invalid date: {value!r}')


def appointment_interval(start: datetime) -> tuple[datetime, datetime]:
    start = parse_instant(start)
    return start, start + APPOINTMENT_DURATION


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    # Half-open intervals: touching endpoints do not overlap.
    return a_start < b_end and a_end > b_start


def is_active(appointment: Any) -> bool:
    return (appointment.status or '').strip().lower() != CANCELLED_STATUS


def _active_on_day(day: date, appointments: Iterable[Any]) -> list[tuple[datetime, Any]]:
    entries = []
    for appointment in appointments:
        if not is_active(appointment):
            continue
        start = parse_instant(appointment.start_time)
        if start.date() == day:
            entries.append((start, appointment))

    entries.sort(key=lambda entry: (entry[0], entry[1].id or 0))
    return entries


def appointments_on_day(day: Any, appointments: Iterable[Any]) -> list[Any]:
    """Non-cancelled appointments starting on ``day``, ordered by start then id."""
    return [appointment for _, appointment in _active_on_day(parse_day(day), appointments)]


def _conflicts(
    candidate_start: datetime,
    entries: list[tuple[datetime, Any]],
    exclude_id: int | None = None,
) -> list[Any]:
    candidate_end = candidate_start + APPOINTMENT_DURATION
    return [
        appointment
        for start, appointment in entries
        if (exclude_id is None or appointment.id != exclude_id)
        and intervals_overlap(candidate_start, candidate_end, start, start + APPOINTMENT_DURATION)
    ]


def _pick_occupant(slot_start: datetime, slot_end: datetime, entries: list[tuple[datetime, Any]]) -> Any | None:
    candidates = [
        (0 if slot_start <= start < slot_end else 1, start, appointment.id or 0, appointment)
        for start, appointment in entries
        if intervals_overlap(slot_start, slot_end, start, start + APPOINTMENT_DURATION)
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda candidate: candidate[:3])[3]


def build_slot_grid(day: Any, appointments: Iterable[Any]) -> SlotGrid:
    """Build the 08:00-18:00 slot grid for ``day``.

    A slot is occupied when a non-cancelled appointment's 60-minute interval
    intersects it. The appointment starting inside a slot is recorded as its
    occupant ahead of one that only runs through it; remaining ties go to the
    earliest start, then the lowest id.
    """
    target_day = parse_day(day)
    entries = _active_on_day(target_day, appointments)

    hours: dict[int, tuple[TimeSlot, ...]] = {}
    for hour in range(BUSINESS_OPEN_HOUR, BUSINESS_CLOSE_HOUR):
        hour_slots = []
        for index in range(SLOTS_PER_HOUR):
            slot_start = datetime.combine(target_day, time(hour, index * SLOT_MINUTES))
            slot_end = slot_start + SLOT_WIDTH
            occupant = _pick_occupant(slot_start, slot_end, entries)
            hour_slots.append(
                TimeSlot(
                    start=slot_start,
                    end=slot_end,
                    is_available=occupant is None,
                    appointment_id=occupant.id if occupant is not None else None,
                    is_bookable=not _conflicts(slot_start, entries),
                )
            )
        hours[hour] = tuple(hour_slots)

    return SlotGrid(day=target_day, hours=hours)


def find_conflicts(
    candidate_start: Any,
    appointments: Iterable[Any],
    day: Any = None,
    exclude_id: int | None = None,
) -> list[Any]:
    """Return the appointments a 60-minute visit at ``candidate_start`` would overlap."""
    start = parse_instant(candidate_start)
    if day is not None and parse_day(day) != start.date():
        raise InvalidInput('Day does not match the candidate start time.')

    return _conflicts(start, _active_on_day(start.date(), appointments), exclude_id=exclude_id)


def would_overlap(
    candidate_start: Any,
    appointments: Iterable[Any],
    day: Any = None,
    exclude_id: int | None = None,
) -> bool:
    """Whether a 60-minute visit at ``candidate_start`` overlaps a same-day appointment.

    Cancelled appointments are ignored, and ``exclude_id`` lets a reschedule
    skip the appointment being moved.
    """
    return bool(find_conflicts(candidate_start, appointments, day=day, exclude_id=exclude_id))
