from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pestcontrol.auth.dependencies import get_current_user
from pestcontrol.database import get_db
from pestcontrol.models.customer import Customer
from pestcontrol.models.review import Review
from pestcontrol.routes.common import database_unavailable, ensure_database_ready
from pestcontrol.scheduling import availability

router = APIRouter(tags=['reviews'], dependencies=[Depends(get_current_user)])

REVIEW_STATUSES = ('pending', 'approved', 'rejected')
MIN_RATING = 1
MAX_RATING = 5


def _normalize_review_status(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in REVIEW_STATUSES:
        raise ValueError('Invalid review status.')
    return normalized


class CreateReviewRequest(BaseModel):
    customer_id: int
    rating: int
    text: str | None = None
    date: datetime | None = None

    @field_validator('rating')
    @classmethod
    def validate_rating(cls, value: int) -> int:
        if not MIN_RATING <= value <= MAX_RATING:
            raise ValueError(f'Rating must be between {MIN_RATING} and {MAX_RATING}.')
        return value

    @field_validator('text')
    @classmethod
    def validate_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class UpdateReviewRequest(BaseModel):
    status: str

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        return _normalize_review_status(value)


class ReviewResponse(BaseModel):
    id: int
    customer_id: int
    rating: int
    text: str | None = None
    status: str
    date: datetime

    class Config:
        from_attributes = True


@router.get('', response_model=list[ReviewResponse])
def list_reviews(
    status_filter: str | None = Query(default=None, alias='status'),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    if status_filter is not None:
        try:
            status_filter = _normalize_review_status(status_filter)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        query = db.query(Review)
        if status_filter:
            query = query.filter(Review.status == status_filter)
        return query.order_by(Review.date.desc(), Review.id.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('', response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
def create_review(data: CreateReviewRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        if db.get(Customer, data.customer_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Customer not found.')

        review = Review(
            customer_id=data.customer_id,
            rating=data.rating,
            text=data.text,
            status='pending',
            date=data.date or availability.business_now(),
        )
        db.add(review)
        db.commit()
        db.refresh(review)
        return review
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.patch('/{review_id}', response_model=ReviewResponse)
def moderate_review(review_id: int, data: UpdateReviewRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        review = db.get(Review, review_id)
        if review is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Review not found.')

        review.status = data.status
        db.commit()
        db.refresh(review)
        return review
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc
