from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pestcontrol.auth.dependencies import get_current_user
from pestcontrol.database import get_db
from pestcontrol.models.appointment import Appointment
from pestcontrol.routes.common import database_unavailable, ensure_database_ready, scheduling_http_error
from pestcontrol.scheduling import availability
from pestcontrol.scheduling.errors import InvalidInput, SchedulingError
from pestcontrol.services import appointments as appointment_store
from pestcontrol.services.geocoding import GeocodingError

router = APIRouter(tags=['appointments'], dependencies=[Depends(get_current_user)])

MAX_APPOINTMENT_NOTES_LENGTH = 1000


class Location(BaseModel):
    lat: float
    lng: float

    @field_validator('lat')
    @classmethod
    def validate_lat(cls, value: float) -> float:
        if not -90 <= value <= 90:
            raise ValueError('Latitude must be between -90 and 90.')
        return value

    @field_validator('lng')
    @classmethod
    def validate_lng(cls, value: float) -> float:
        if not -180 <= value <= 180:
            raise ValueError('Longitude must be between -180 and 180.')
        return value


class AppointmentFields(BaseModel):
    @field_validator('start_time', mode='before', check_fields=False)
    @classmethod
    def validate_start_time(cls, value):
        if value is None:
            return None
        try:
            return availability.parse_instant(value)
        except InvalidInput as exc:
            raise ValueError(str(exc)) from exc

    @field_validator('service_type', check_fields=False)
    @classmethod
    def validate_service_type(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized not in appointment_store.SERVICE_TYPES:
            raise ValueError('Invalid service type.')
        return normalized

    @field_validator('status', check_fields=False)
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized not in appointment_store.APPOINTMENT_STATUSES:
            raise ValueError('Invalid appointment status.')
        return normalized

    @field_validator('notes', check_fields=False)
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

        return normalized


class CreateAppointmentRequest(AppointmentFields):
    customer_id: int
    start_time: datetime
    service_type: str
    status: str = 'pending'
    notes: str | None = None
    location: Location | None = None


class UpdateAppointmentRequest(AppointmentFields):
    start_time: datetime | None = None
    status: str | None = None
    service_type: str | None = None
    notes: str | None = None
    location: Location | None = None

    @model_validator(mode='after')
    def require_changes(self):
        if not self.model_fields_set:
            raise ValueError('At least one field must be provided.')
        return self

    def to_changes(self) -> dict:
        changes = self.model_dump(exclude_unset=True, exclude={'location'})
        if self.location is not None:
            changes['latitude'] = self.location.lat
            changes['longitude'] = self.location.lng
        return changes


class AppointmentResponse(BaseModel):
    id: int
    customer_id: int
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    status: str
    service_type: str
    notes: str | None = None
    location: Location | None = None


class TimeSlotResponse(BaseModel):
    start: datetime
    end: datetime
    is_available: bool
    is_bookable: bool
    appointment_id: int | None = None


class SlotHourResponse(BaseModel):
    hour: int
    slots: list[TimeSlotResponse]


class SlotGridResponse(BaseModel):
    day: date
    hours: list[SlotHourResponse]


class OverlapResponse(BaseModel):
    start: datetime
    end: datetime
    overlaps: bool
    conflicting_ids: list[int]


class ServiceTypeResponse(BaseModel):
    service_type: str
    label: str
    duration_minutes: int


def to_appointment_response(appointment: Appointment) -> AppointmentResponse:
    start, end = availability.appointment_interval(appointment.start_time)
    location = None
    if appointment.latitude is not None and appointment.longitude is not None:
        location = Location(lat=appointment.latitude, lng=appointment.longitude)
    return AppointmentResponse(
        id=appointment.id,
        customer_id=appointment.customer_id,
        start_time=start,
        end_time=end,
        duration_minutes=availability.APPOINTMENT_DURATION_MINUTES,
        status=appointment.status,
        service_type=appointment.service_type,
        notes=appointment.notes,
        location=location,
    )


def to_slot_grid_response(grid: availability.SlotGrid) -> SlotGridResponse:
    return SlotGridResponse(
        day=grid.day,
        hours=[
            SlotHourResponse(
                hour=hour,
                slots=[
                    TimeSlotResponse(
                        start=slot.start,
                        end=slot.end,
                        is_available=slot.is_available,
                        is_bookable=slot.is_bookable,
                        appointment_id=slot.appointment_id,
                    )
                    for slot in slots
                ],
            )
            for hour, slots in grid.hours.items()
        ],
    )


@router.get('/service-types', response_model=list[ServiceTypeResponse])
def list_service_types():
    return [
        ServiceTypeResponse(
            service_type=service_type,
            label=label,
            duration_minutes=availability.APPOINTMENT_DURATION_MINUTES,
        )
        for service_type, label in appointment_store.SERVICE_TYPES.items()
    ]


@router.get('/slots', response_model=SlotGridResponse)
def get_slot_grid(day: date = Query(...), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        day_appointments = appointment_store.list_appointments_for_day(db, day)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return to_slot_grid_response(availability.build_slot_grid(day, day_appointments))


@router.get('/overlap', response_model=OverlapResponse)
def preview_overlap(
    start: str = Query(...),
    exclude_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    """Read-only check of a candidate start time, e.g. while hovering a slot."""
    ensure_database_ready()

    try:
        candidate_start, candidate_end = availability.appointment_interval(start)
        day_appointments = appointment_store.list_appointments_for_day(db, candidate_start.date())
        conflicts = availability.find_conflicts(candidate_start, day_appointments, exclude_id=exclude_id)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return OverlapResponse(
        start=candidate_start,
        end=candidate_end,
        overlaps=bool(conflicts),
        conflicting_ids=[appointment.id for appointment in conflicts],
    )


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(day: date | None = Query(default=None), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointments = appointment_store.list_appointments(db, day=day)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return [to_appointment_response(appointment) for appointment in appointments]


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(data: CreateAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = appointment_store.create_appointment(
            db,
            customer_id=data.customer_id,
            start_time=data.start_time,
            service_type=data.service_type,
            status=data.status,
            notes=data.notes,
            latitude=data.location.lat if data.location else None,
            longitude=data.location.lng if data.location else None,
        )
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except GeocodingError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return to_appointment_response(appointment)


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(appointment_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = appointment_store.get_appointment(db, appointment_id)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return to_appointment_response(appointment)


@router.patch('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(appointment_id: int, data: UpdateAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = appointment_store.update_appointment(db, appointment_id, data.to_changes())
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return to_appointment_response(appointment)
