import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('JWT_SECRET_KEY', 'test-secret')

from pestcontrol import database  # noqa: E402
from pestcontrol.auth import jwt_handler, passwords  # noqa: E402
from pestcontrol.database import Base, get_db  # noqa: E402
from pestcontrol.main import app  # noqa: E402
from pestcontrol.models.customer import Customer  # noqa: E402
from pestcontrol.models.user import User  # noqa: E402


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory, monkeypatch: pytest.MonkeyPatch):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    monkeypatch.setattr(database, 'SessionLocal', session_factory)
    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def staff_user(db) -> User:
    user = User(
        username='dispatch',
        hashed_password=passwords.hash_password('correct horse'),
        name='Dispatch Desk',
        role='admin',
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def auth_headers(staff_user) -> dict:
    token = jwt_handler.create_access_token(subject=staff_user.username)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def customer(db) -> Customer:
    record = Customer(
        name='Ada Homeowner',
        email='ada@example.com',
        phone='555-010-2030',
        address='12 Elm Street, Springfield',
        status='active',
        service_plan='quarterly',
        tags=['termite', 'vip'],
        latitude=40.71,
        longitude=-74.0,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record
