from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pestcontrol.auth.dependencies import get_current_user
from pestcontrol.database import get_db
from pestcontrol.models.appointment import Appointment
from pestcontrol.models.customer import Customer
from pestcontrol.routes.common import database_unavailable, ensure_database_ready
from pestcontrol.scheduling import availability
from pestcontrol.services import appointments as appointment_store

router = APIRouter(tags=['routes'], dependencies=[Depends(get_current_user)])


class RouteStopResponse(BaseModel):
    appointment_id: int
    customer_id: int
    customer_name: str | None = None
    address: str | None = None
    start_time: datetime
    end_time: datetime
    status: str
    service_type: str
    lat: float | None = None
    lng: float | None = None


class DayRouteResponse(BaseModel):
    day: date
    stops: list[RouteStopResponse]


def to_route_stop(appointment: Appointment, customer: Customer | None) -> RouteStopResponse:
    start, end = availability.appointment_interval(appointment.start_time)
    return RouteStopResponse(
        appointment_id=appointment.id,
        customer_id=appointment.customer_id,
        customer_name=customer.name if customer else None,
        address=customer.address if customer else None,
        start_time=start,
        end_time=end,
        status=appointment.status,
        service_type=appointment.service_type,
        lat=appointment.latitude,
        lng=appointment.longitude,
    )


@router.get('', response_model=DayRouteResponse)
def get_day_route(day: date = Query(...), db: Session = Depends(get_db)):
    """Stops for one day in visiting order (by start time); no path optimization."""
    ensure_database_ready()

    try:
        day_appointments = availability.appointments_on_day(
            day,
            appointment_store.list_appointments_for_day(db, day),
        )
        customer_ids = {appointment.customer_id for appointment in day_appointments}
        customers = {
            customer.id: customer
            for customer in db.query(Customer).filter(Customer.id.in_(customer_ids)).all()
        } if customer_ids else {}
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    stops = [
        to_route_stop(appointment, customers.get(appointment.customer_id))
        for appointment in day_appointments
    ]
    return DayRouteResponse(day=day, stops=stops)
