"""Appointment storage: reads, and writes guarded by the overlap check.

Creates and reschedules re-read the target day's appointments inside the
write transaction (row-locked where the database supports it) and run
``would_overlap`` against that fresh snapshot right before committing. There
is no other mutual exclusion between concurrent bookings.
"""

import logging
from datetime import datetime, time, timedelta
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pestcontrol.models.appointment import Appointment
from pestcontrol.models.customer import Customer
from pestcontrol.scheduling import availability
from pestcontrol.scheduling.errors import Conflict, InvalidInput, NotFound
from pestcontrol.services import geocoding

logger = logging.getLogger(__name__)

APPOINTMENT_STATUSES = ('pending', 'confirmed', 'completed', 'cancelled')
SERVICE_TYPES = {
    'general': 'General Pest Control',
    'termite': 'Termite Treatment',
    'rodent': 'Rodent Control',
    'mosquito': 'Mosquito Treatment',
}
CONFLICT_MESSAGE = 'This time slot is no longer available.'
UPDATABLE_FIELDS = ('start_time', 'status', 'service_type', 'notes', 'latitude', 'longitude')

Geocoder = Callable[[str], geocoding.GeocodeResult | None]


def _day_bounds(day: Any) -> tuple[datetime, datetime]:
    day_start = datetime.combine(availability.parse_day(day), time.min)
    return day_start, day_start + timedelta(days=1)


def _normalize_status(status: str) -> str:
    normalized = (status or '').strip().lower()
    if normalized not in APPOINTMENT_STATUSES:
        raise InvalidInput(f'Invalid appointment status: {status!r}')
    return normalized


def list_appointments(db: Session, day: Any = None) -> list[Appointment]:
    query = db.query(Appointment)
    if day is not None:
        day_start, day_end = _day_bounds(day)
        query = query.filter(Appointment.start_time >= day_start, Appointment.start_time < day_end)
    return query.order_by(Appointment.start_time.asc(), Appointment.id.asc()).all()


def list_appointments_for_day(db: Session, day: Any, lock: bool = False) -> list[Appointment]:
    day_start, day_end = _day_bounds(day)
    query = db.query(Appointment).filter(
        Appointment.start_time >= day_start,
        Appointment.start_time < day_end,
    ).order_by(Appointment.start_time.asc(), Appointment.id.asc())
    if lock:
        query = query.with_for_update()
    return query.all()


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFound('Appointment not found.')
    return appointment


def resolve_location(
    customer: Customer,
    latitude: float | None = None,
    longitude: float | None = None,
    geocoder: Geocoder | None = None,
) -> tuple[float, float]:
    """Pick the appointment location: explicit, then the customer's, then geocoded."""
    if latitude is not None and longitude is not None:
        return latitude, longitude

    if customer.latitude is not None and customer.longitude is not None:
        return customer.latitude, customer.longitude

    result = (geocoder or geocoding.geocode)(customer.address)
    if result is None:
        raise InvalidInput("Could not determine a location from the customer's address.")

    customer.latitude = result.lat
    customer.longitude = result.lng
    return result.lat, result.lng


def _ensure_no_conflict(db: Session, start: datetime, exclude_id: int | None = None) -> None:
    day_appointments = list_appointments_for_day(db, start.date(), lock=True)
    conflicts = availability.find_conflicts(start, day_appointments, exclude_id=exclude_id)
    if conflicts:
        conflicting_ids = [appointment.id for appointment in conflicts]
        db.rollback()
        logger.warning('Rejected booking at %s: overlaps appointments %s', start.isoformat(), conflicting_ids)
        raise Conflict(CONFLICT_MESSAGE, conflicting_ids)


def create_appointment(
    db: Session,
    *,
    customer_id: int,
    start_time: Any,
    service_type: str,
    status: str = 'pending',
    notes: str | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
    geocoder: Geocoder | None = None,
) -> Appointment:
    start = availability.parse_instant(start_time)
    status = _normalize_status(status)

    try:
        customer = db.get(Customer, customer_id)
        if customer is None:
            raise NotFound('Customer not found.')

        latitude, longitude = resolve_location(customer, latitude, longitude, geocoder=geocoder)

        if status != availability.CANCELLED_STATUS:
            _ensure_no_conflict(db, start)

        appointment = Appointment(
            customer_id=customer_id,
            start_time=start,
            status=status,
            service_type=service_type,
            notes=notes,
            latitude=latitude,
            longitude=longitude,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info('Created appointment %s for customer %s at %s', appointment.id, customer_id, start.isoformat())
    return appointment


def update_appointment(db: Session, appointment_id: int, changes: dict[str, Any]) -> Appointment:
    """Apply a partial update; status transitions are unrestricted.

    The overlap check runs when the appointment ends up active and either moves
    or comes back from ``cancelled``.
    """
    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise InvalidInput(f'Cannot update fields: {", ".join(sorted(unknown))}')

    try:
        appointment = get_appointment(db, appointment_id)
        previous_start = availability.parse_instant(appointment.start_time)
        was_active = availability.is_active(appointment)

        new_start = previous_start
        if changes.get('start_time') is not None:
            new_start = availability.parse_instant(changes['start_time'])

        new_status = appointment.status
        if changes.get('status') is not None:
            new_status = _normalize_status(changes['status'])

        if new_status != availability.CANCELLED_STATUS and (new_start != previous_start or not was_active):
            _ensure_no_conflict(db, new_start, exclude_id=appointment_id)

        appointment.start_time = new_start
        appointment.status = new_status
        for field in ('service_type', 'latitude', 'longitude'):
            if changes.get(field) is not None:
                setattr(appointment, field, changes[field])
        if 'notes' in changes:
            appointment.notes = changes['notes']

        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError:
        db.rollback()
        raise

    if new_start != previous_start:
        logger.info('Rescheduled appointment %s from %s to %s', appointment_id, previous_start.isoformat(), new_start.isoformat())
    return appointment
