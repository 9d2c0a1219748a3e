from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pestcontrol.auth.dependencies import get_current_user
from pestcontrol.database import get_db
from pestcontrol.models.customer import Customer
from pestcontrol.routes.common import database_unavailable, ensure_database_ready

router = APIRouter(tags=['customers'], dependencies=[Depends(get_current_user)])

CUSTOMER_STATUSES = ('active', 'inactive', 'pending', 'suspended')
SERVICE_PLANS = ('monthly', 'quarterly', 'yearly')
MIN_PHONE_DIGITS = 10


def _normalize_choice(value: str | None, choices: tuple[str, ...], label: str) -> str | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized not in choices:
        raise ValueError(f'Invalid {label}.')
    return normalized


def _normalize_tags(value: list[str] | None) -> list[str] | None:
    if value is None:
        return None
    tags: list[str] = []
    for tag in value:
        normalized = tag.strip()
        if normalized and normalized not in tags:
            tags.append(normalized)
    return tags


class CustomerFields(BaseModel):
    @field_validator('name', 'address', check_fields=False)
    @classmethod
    def validate_required_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError('This field is required.')
        return normalized

    @field_validator('email', check_fields=False)
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        local, _, domain = normalized.partition('@')
        if not local or '.' not in domain:
            raise ValueError('Invalid email address.')
        return normalized

    @field_validator('phone', check_fields=False)
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if sum(character.isdigit() for character in normalized) < MIN_PHONE_DIGITS:
            raise ValueError(f'Phone number must be at least {MIN_PHONE_DIGITS} digits.')
        return normalized

    @field_validator('status', check_fields=False)
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        return _normalize_choice(value, CUSTOMER_STATUSES, 'customer status')

    @field_validator('service_plan', check_fields=False)
    @classmethod
    def validate_service_plan(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return _normalize_choice(value, SERVICE_PLANS, 'service plan')

    @field_validator('tags', check_fields=False)
    @classmethod
    def validate_tags(cls, value: list[str] | None) -> list[str] | None:
        return _normalize_tags(value)


class CreateCustomerRequest(CustomerFields):
    name: str
    email: str
    phone: str
    address: str
    notes: str | None = None
    status: str = 'active'
    service_plan: str | None = None
    tags: list[str] = []
    latitude: float | None = None
    longitude: float | None = None


class UpdateCustomerRequest(CustomerFields):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    notes: str | None = None
    status: str | None = None
    service_plan: str | None = None
    tags: list[str] | None = None
    latitude: float | None = None
    longitude: float | None = None


class CustomerResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: str
    address: str
    notes: str | None = None
    status: str
    service_plan: str | None = None
    tags: list[str] = []
    latitude: float | None = None
    longitude: float | None = None

    class Config:
        from_attributes = True

    @field_validator('tags', mode='before')
    @classmethod
    def default_tags(cls, value):
        return value or []


def matches_search(customer: Customer, search: str) -> bool:
    needle = search.strip().lower()
    if not needle:
        return True
    haystack = [customer.name, customer.email, customer.address, *(customer.tags or [])]
    return any(needle in (value or '').lower() for value in haystack)


@router.get('', response_model=list[CustomerResponse])
def list_customers(
    status_filter: str | None = Query(default=None, alias='status'),
    service_plan: str | None = Query(default=None),
    q: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Customer)
        if status_filter:
            query = query.filter(Customer.status == status_filter.strip().lower())
        if service_plan:
            query = query.filter(Customer.service_plan == service_plan.strip().lower())
        customers = query.order_by(Customer.name.asc(), Customer.id.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    if q:
        customers = [customer for customer in customers if matches_search(customer, q)]
    return customers


@router.post('', response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
def create_customer(data: CreateCustomerRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        customer = Customer(**data.model_dump())
        db.add(customer)
        db.commit()
        db.refresh(customer)
        return customer
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


def _get_customer_or_404(db: Session, customer_id: int) -> Customer:
    customer = db.get(Customer, customer_id)
    if customer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Customer not found.')
    return customer


@router.get('/{customer_id}', response_model=CustomerResponse)
def get_customer(customer_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return _get_customer_or_404(db, customer_id)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.patch('/{customer_id}', response_model=CustomerResponse)
def update_customer(customer_id: int, data: UpdateCustomerRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        customer = _get_customer_or_404(db, customer_id)
        changes = data.model_dump(exclude_unset=True)
        if 'address' in changes and changes['address'] != customer.address:
            # Stale coordinates must not outlive the address they were computed for.
            customer.latitude = None
            customer.longitude = None
        for field, value in changes.items():
            if value is None and field not in ('notes', 'service_plan', 'latitude', 'longitude'):
                continue
            setattr(customer, field, value)
        db.commit()
        db.refresh(customer)
        return customer
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc
