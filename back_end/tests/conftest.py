from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.crud.incident import create_incident
from app.utils.clock import utcnow


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(engine):
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    def override_get_db():
        session = Session()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def add_incident(db):
    """Insert an incident directly, bypassing pattern learning."""
    def _add(
        lat=40.7128,
        lng=-74.0060,
        type="theft",
        severity="medium",
        status="active",
        reporter_id="reporter",
        hours_ago=0.0,
        now=None,
    ):
        now = now or utcnow()
        row = create_incident(
            db,
            reporter_id=reporter_id,
            lat=lat,
            lng=lng,
            incident_type=type,
            severity=severity,
            title=f"{type} report",
            reported_at=now - timedelta(hours=hours_ago),
            status=status,
        )
        db.commit()
        return row

    return _add
