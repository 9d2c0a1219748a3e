from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pestcontrol.auth.dependencies import get_current_user
from pestcontrol.database import get_db
from pestcontrol.models.appointment import Appointment
from pestcontrol.models.customer import Customer
from pestcontrol.models.review import Review
from pestcontrol.routes.common import database_unavailable, ensure_database_ready
from pestcontrol.scheduling import availability
from pestcontrol.services import appointments as appointment_store

router = APIRouter(tags=['dashboard'], dependencies=[Depends(get_current_user)])


class DashboardResponse(BaseModel):
    day: date
    todays_appointments: int
    open_slots_today: int
    pending_appointments: int
    pending_reviews: int
    customers: int


@router.get('', response_model=DashboardResponse)
def get_dashboard(db: Session = Depends(get_db)):
    ensure_database_ready()

    today = availability.business_today()
    try:
        todays = appointment_store.list_appointments_for_day(db, today)
        pending_appointments = db.query(func.count(Appointment.id)).filter(Appointment.status == 'pending').scalar()
        pending_reviews = db.query(func.count(Review.id)).filter(Review.status == 'pending').scalar()
        customers = db.query(func.count(Customer.id)).scalar()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    grid = availability.build_slot_grid(today, todays)
    return DashboardResponse(
        day=today,
        todays_appointments=len(availability.appointments_on_day(today, todays)),
        open_slots_today=len(grid.available_slots()),
        pending_appointments=pending_appointments or 0,
        pending_reviews=pending_reviews or 0,
        customers=customers or 0,
    )
