from datetime import datetime, timedelta
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select
from sqlalchemy.orm import Session

from .api import (
    addresses,
    announcements,
    auth,
    clubs,
    events,
    leaderboard,
    membership,
    sheets,
    suggestions,
    users,
)
from .auth_utils import hash_password
from .config import settings
from .context import IdentityMiddleware
from .db import Base, engine, get_session
from .deps import get_db  # noqa: F401  re-exported for dependency overrides
from .errors import register_error_handlers
from .models import Announcement, Club, ClubMember, Event, User

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Club Portal (FastAPI + SQLAlchemy)")

# CORS for the portal frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.cors_origin],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(IdentityMiddleware)
register_error_handlers(app)

# sheet routes first: /api/events/csv must win over /api/events/{event_id}
app.include_router(sheets.router)
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(addresses.router)
app.include_router(suggestions.router)
app.include_router(clubs.router)
app.include_router(membership.router)
app.include_router(events.router)
app.include_router(announcements.router)
app.include_router(leaderboard.router)


@app.on_event("startup")
def startup() -> None:
    Base.metadata.create_all(engine)
    if settings.seed_demo_data:
        with get_session() as session:
            seed_data(session)
    if not settings.ai_configured:
        logger.info("Generative AI key not set; suggestions use keyword matching")


DEMO_PASSWORD = "password123"


def _seed_user(session: Session, name: str, email: str, **fields) -> User:
    user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user:
        user = User(name=name, email=email, password_hash=hash_password(DEMO_PASSWORD), **fields)
        session.add(user)
        session.flush()
    return user


def seed_data(session: Session) -> None:
    alice = _seed_user(session, "Alice Chen", "alice@school.edu", department="Computer Science", year="3", points=120)
    bob = _seed_user(session, "Bob Rivera", "bob@school.edu", department="Fine Arts", year="2", points=60)
    carol = _seed_user(session, "Carol Singh", "carol@school.edu", department="Kinesiology", year="4", points=30)
    _seed_user(session, "Dan Okafor", "dan@school.edu", department="Economics", year="1")

    coding = session.execute(select(Club).where(Club.name == "Coding Club")).scalar_one_or_none()
    if not coding:
        coding = Club(
            name="Coding Club",
            description="Weekly hack nights, programming contests and software project teams.",
            category="Technology",
            tags=["programming", "hackathon", "web"],
            meeting_schedule="Thursdays 6pm, ENG 101",
            owner_id=alice.id,
        )
        session.add(coding)
        session.flush()
        session.add(ClubMember(club_id=coding.id, user_id=alice.id, role="admin"))
        session.add(ClubMember(club_id=coding.id, user_id=carol.id, role="member"))
        session.add(
            Event(
                club_id=coding.id,
                title="Intro to Git Workshop",
                description="Branches, merges and pull requests from scratch.",
                date=datetime.utcnow() + timedelta(days=3),
                venue="ENG 101",
                max_participants=2,
                category="Workshop",
            )
        )
        session.add(
            Announcement(
                club_id=coding.id,
                author_id=alice.id,
                title="Kickoff week",
                content="First hack night this Thursday in ENG 101. Bring a laptop!",
                priority="high",
                tags=["welcome"],
            )
        )

    photo = session.execute(select(Club).where(Club.name == "Photography Society")).scalar_one_or_none()
    if not photo:
        photo = Club(
            name="Photography Society",
            description="Photo walks, darkroom sessions and an end of term exhibition.",
            category="Arts",
            tags=["photography", "art", "exhibition"],
            owner_id=bob.id,
        )
        session.add(photo)
        session.flush()
        session.add(ClubMember(club_id=photo.id, user_id=bob.id, role="admin"))

    hoops = session.execute(select(Club).where(Club.name == "Basketball Club")).scalar_one_or_none()
    if not hoops:
        hoops = Club(
            name="Basketball Club",
            description="Pickup games, fitness drills and the intramural league.",
            category="Sports",
            tags=["basketball", "fitness"],
            owner_id=carol.id,
        )
        session.add(hoops)
        session.flush()
        session.add(ClubMember(club_id=hoops.id, user_id=carol.id, role="admin"))
