import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from pestcontrol.database import ensure_appointment_schema, ensure_customer_schema
from pestcontrol.scheduling.errors import Conflict, NotFound, SchedulingError

logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def ensure_database_ready() -> None:
    try:
        ensure_customer_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


def database_unavailable(exc: SQLAlchemyError) -> HTTPException:
    logger.error('Database error: %s', exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def scheduling_http_error(exc: SchedulingError) -> HTTPException:
    if isinstance(exc, Conflict):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={'message': str(exc), 'conflicting_ids': exc.conflicting_ids},
        )
    if isinstance(exc, NotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
