import os

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('BOOTSTRAP_ADMIN', 'false')

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from school_backend.database import Base  # noqa: E402
from school_backend.models import password_reset_token, user  # noqa: E402,F401
from school_backend.models.school_class import SchoolClass  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def school_class(db):
    school_class = SchoolClass(name='9A', specialization='Mathematics')
    db.add(school_class)
    db.commit()
    db.refresh(school_class)
    return school_class


@pytest.fixture
def client(session_factory, monkeypatch):
    from school_backend.main import app

    monkeypatch.setattr(app.state, 'session_factory', session_factory)
    return TestClient(app)
