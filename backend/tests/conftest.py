import os

os.environ["DATABASE_URL"] = "sqlite:///./test_clubs.db"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["EVENTS_CSV_URL"] = ""
os.environ["ANNOUNCEMENTS_CSV_URL"] = ""
os.environ["GOOGLE_GENAI_API_KEY"] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, select  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from clubportal import models  # noqa: E402
from clubportal.db import Base  # noqa: E402
from clubportal.main import app, get_db, seed_data  # noqa: E402

TEST_DB_URL = "sqlite:///./test_clubs.db"
engine = create_engine(TEST_DB_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def override_get_db():
    session = TestingSessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def auth_headers(email: str) -> dict[str, str]:
    return {"X-User-Email": email}


def get_club_id_by_name(name: str) -> int:
    with TestingSessionLocal() as session:
        club = session.execute(select(models.Club).where(models.Club.name == name)).scalars().first()
        assert club is not None
        return club.id


def get_user_by_email(email: str) -> models.User:
    with TestingSessionLocal() as session:
        user = session.execute(select(models.User).where(models.User.email == email)).scalar_one()
        session.expunge(user)
        return user


@pytest.fixture(autouse=True)
def setup_test_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    with TestingSessionLocal() as session:
        seed_data(session)
        session.commit()
    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides.pop(get_db, None)
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client():
    with TestClient(app) as c:
        yield c
