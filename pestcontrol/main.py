import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from pestcontrol.core import config
from pestcontrol.database import Base, engine, ensure_appointment_schema, ensure_customer_schema
from pestcontrol.models import appointment, customer, message, review, user  # noqa: F401
from pestcontrol.routes import (
    appointment_routes,
    auth_routes,
    customer_routes,
    dashboard_routes,
    geocoding_routes,
    message_routes,
    review_routes,
    route_map_routes,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
)

app = FastAPI(title='Pest Control Back Office')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_customer_schema()
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Pest Control API Running'}


app.include_router(auth_routes.router, prefix='/api/auth')
app.include_router(customer_routes.router, prefix='/api/customers')
app.include_router(appointment_routes.router, prefix='/api/appointments')
app.include_router(review_routes.router, prefix='/api/reviews')
app.include_router(message_routes.router, prefix='/api/messages')
app.include_router(route_map_routes.router, prefix='/api/routes')
app.include_router(geocoding_routes.router, prefix='/api/geocoding')
app.include_router(dashboard_routes.router, prefix='/api/dashboard')
app.include_router(message_routes.ws_router)
