import os

# Must be set before database.py is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient

from database import Base, SessionLocal, engine, get_db
from main import app
from models import Dustbin, Incident, Report
from services import auth

PICKUP = {"lat": 12.9721, "lng": 77.5950}
DISPOSAL = {"lat": 12.9716, "lng": 77.5946}


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def collector(db):
    return auth.signup(db, "Test Collector", "collector@ecowaste.in", "secret123")


@pytest.fixture
def other_collector(db):
    return auth.signup(db, "Second Collector", "second@ecowaste.in", "secret123")


@pytest.fixture
def employee(db):
    return auth.signup(db, "Ward Officer", "officer@ecowaste.in", "secret123", role="employee")


@pytest.fixture
def headers_for():
    def _headers(user):
        return {"Authorization": f"Bearer {auth.create_token(user)}"}
    return _headers


@pytest.fixture
def make_dustbin(db):
    def _make(name="Main Street Bin", photo="D0", lat=DISPOSAL["lat"], lng=DISPOSAL["lng"], **fields):
        dustbin = Dustbin(
            name=name,
            lat=lat,
            lng=lng,
            photo_base64=photo,
            initial_photo_base64=photo,
            **fields,
        )
        db.add(dustbin)
        db.commit()
        db.refresh(dustbin)
        return dustbin
    return _make


@pytest.fixture
def make_report(db):
    def _make(collector, status="pending", points=0, dustbin=None, disposal_image="disposal", **fields):
        report = Report(
            pickup_image_base64="pickup",
            pickup_lat=PICKUP["lat"],
            pickup_lng=PICKUP["lng"],
            disposal_image_base64=disposal_image,
            disposal_lat=DISPOSAL["lat"],
            disposal_lng=DISPOSAL["lng"],
            dustbin_id=dustbin.id if dustbin else None,
            status=status,
            points=points,
            collector_email=collector.email,
            collector_id=collector.id,
            **fields,
        )
        db.add(report)
        db.commit()
        db.refresh(report)
        return report
    return _make


@pytest.fixture
def make_incident(db):
    def _make(reporter, status="reported", category="pothole", urgency="medium", rewarded=False, **fields):
        incident = Incident(
            category=category,
            lat=PICKUP["lat"],
            lng=PICKUP["lng"],
            image_base64="incident",
            urgency=urgency,
            status=status,
            rewarded=rewarded,
            reporter_id=reporter.id if reporter else None,
            **fields,
        )
        db.add(incident)
        db.commit()
        db.refresh(incident)
        return incident
    return _make
