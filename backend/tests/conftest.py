import os

# 測試使用記憶體 SQLite，必須在匯入 carerota 之前設定
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("ENABLE_GENERATION_SCHEDULER", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from carerota import models  # noqa: F401
from carerota.core.database import Base, get_db
from carerota.models.shift import Rota, StaffMember

from helpers import ROTA_ID, STAFF_ID, InMemoryShiftStore


@pytest.fixture
def store():
    return InMemoryShiftStore()


@pytest.fixture
def atomic_store():
    return InMemoryShiftStore(atomic=True)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def staff_and_rota(db_session):
    rota = Rota(id=ROTA_ID, name="Oak House Days")
    staff = StaffMember(id=STAFF_ID, full_name="Alex Morgan", job_title="Care Assistant", default_rota_id=ROTA_ID)
    db_session.add_all([rota, staff])
    db_session.commit()
    return staff, rota


@pytest.fixture
def client(session_factory):
    from fastapi.testclient import TestClient
    from main import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
