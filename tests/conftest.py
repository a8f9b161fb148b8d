import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import crud
import service
import schemas
from database import get_db
from main import app
from models import Base


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def add_university(db, **overrides):
    data = {
        "name": "Test University",
        "country": "USA",
        "city": "Boston",
        "ranking": 10,
        "acceptance_rate": 12.5,
        "tuition_fee_min": 30000,
        "tuition_fee_max": 50000,
        "programs": ["Computer Science"],
    }
    data.update(overrides)
    return crud.create_university(db, data)


def onboarding_payload(**overrides) -> dict:
    payload = {
        "full_name": "Ada Student",
        "current_education_level": "undergraduate",
        "field_of_study": "Computer Science",
        "gpa": 3.8,
        "test_scores": {"GRE": 325},
        "target_degree": "masters",
        "preferred_countries": ["USA", "Canada"],
        "preferred_fields": ["Computer Science"],
        "budget_min": 20000,
        "budget_max": 45000,
        "exams_taken": ["GRE"],
        "exams_planned": ["TOEFL"],
        "final_submit": True,
    }
    payload.update(overrides)
    return payload


def onboarded_user(db, email="ada@example.com", **overrides):
    profile = service.register_user(db, email, "Ada Student")
    data = schemas.OnboardingData(**onboarding_payload(**overrides))
    return service.submit_onboarding(db, profile.id, data)
