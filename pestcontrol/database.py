from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from pestcontrol.core import config


DATABASE_URL = config.DATABASE_URL

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, echo=config.DATABASE_ECHO, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_appointment_schema_checked = False
_customer_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('service_type', "ALTER TABLE appointments ADD COLUMN service_type VARCHAR DEFAULT 'general'"),
            ('notes', 'ALTER TABLE appointments ADD COLUMN notes VARCHAR'),
            ('latitude', 'ALTER TABLE appointments ADD COLUMN latitude FLOAT'),
            ('longitude', 'ALTER TABLE appointments ADD COLUMN longitude FLOAT'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_start ON appointments(start_time)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_status_start ON appointments(status, start_time)')
            )

        _appointment_schema_checked = True


def ensure_customer_schema() -> None:
    global _customer_schema_checked

    if _customer_schema_checked:
        return

    with _schema_lock:
        if _customer_schema_checked:
            return

        inspector = inspect(engine)

        if 'customers' not in inspector.get_table_names():
            _customer_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('customers')}
        migration_steps = [
            ('status', "ALTER TABLE customers ADD COLUMN status VARCHAR DEFAULT 'active'"),
            ('service_plan', 'ALTER TABLE customers ADD COLUMN service_plan VARCHAR'),
            ('tags', 'ALTER TABLE customers ADD COLUMN tags JSON'),
            ('latitude', 'ALTER TABLE customers ADD COLUMN latitude FLOAT'),
            ('longitude', 'ALTER TABLE customers ADD COLUMN longitude FLOAT'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))

        _customer_schema_checked = True
