import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..deps import ensure_event_manager, get_club_or_404, get_current_user, get_db
from ..errors import BadRequest, Conflict, NotFound
from ..models import Event, Registration, User
from ..notifications import send_registration_confirmation
from ..schemas import EventCreate, EventOut
from ..services import (
    EVENT_ATTENDANCE_POINTS,
    EVENT_ORGANIZATION_POINTS,
    award_points,
    base_event_query,
    flush_or_conflict,
    registration_count,
    serialize_event,
)

logger = logging.getLogger(__name__)

router = APIRouter()

REQUIRED_FIELDS = ("title", "date", "venue", "club_id")


def _active_event(db: Session, event_id: int) -> Event:
    event = db.get(Event, event_id)
    if not event or not event.is_active:
        raise NotFound("Event not found")
    return event


@router.post("/api/events", response_model=EventOut, status_code=201)
def create_event(
    payload: EventCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    data = payload.model_dump()
    for field in ("title", "venue"):
        if isinstance(data[field], str):
            data[field] = data[field].strip()
    missing = [field for field in REQUIRED_FIELDS if not data.get(field)]
    if missing:
        raise BadRequest(f"Missing required fields: {', '.join(missing)}")

    club = get_club_or_404(db, data["club_id"], active_only=True)
    ensure_event_manager(db, club, user)

    event = Event(**data)
    db.add(event)
    award_points(user, EVENT_ORGANIZATION_POINTS)
    db.flush()
    db.refresh(event)
    logger.info("Event %s created for club %s by user %s", event.id, club.id, user.id)
    return serialize_event(event, registrations=0)


@router.get("/api/events", response_model=list[EventOut])
def list_events(club_id: int | None = None, db: Session = Depends(get_db)):
    stmt, _ = base_event_query()
    if club_id is not None:
        stmt = stmt.where(Event.club_id == club_id)
    rows = db.execute(stmt.order_by(Event.date.asc(), Event.id.asc())).all()
    return [serialize_event(event, regs) for event, regs in rows]


@router.get("/api/events/{event_id}", response_model=EventOut)
def get_event(event_id: int, db: Session = Depends(get_db)):
    event = _active_event(db, event_id)
    return serialize_event(event, registration_count(db, event.id))


@router.delete("/api/events/{event_id}")
def delete_event(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    event = db.get(Event, event_id)
    if not event:
        raise NotFound("Event not found")
    ensure_event_manager(db, event.club, user)
    db.delete(event)
    return {"message": "Event deleted successfully"}


@router.post("/api/events/{event_id}/register", status_code=201)
def register(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    event = _active_event(db, event_id)

    existing = db.execute(
        select(Registration).where(
            Registration.event_id == event.id,
            Registration.user_id == user.id,
        )
    ).scalar_one_or_none()
    if existing:
        raise Conflict("Already registered for this event")

    current = registration_count(db, event.id)
    if event.max_participants and current >= event.max_participants:
        raise Conflict("Event is full")

    registration = Registration(event_id=event.id, user_id=user.id)
    db.add(registration)
    award_points(user, EVENT_ATTENDANCE_POINTS)
    flush_or_conflict(db, "Already registered for this event")

    send_registration_confirmation(user.email, event.title)
    return {
        "message": "Successfully registered for the event",
        "registration_id": registration.id,
        "points_awarded": EVENT_ATTENDANCE_POINTS,
    }


@router.delete("/api/events/{event_id}/register")
def unregister(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    registration = db.execute(
        select(Registration).where(
            Registration.event_id == event_id,
            Registration.user_id == user.id,
        )
    ).scalar_one_or_none()
    if not registration:
        raise NotFound("Registration not found")

    db.delete(registration)
    award_points(user, -EVENT_ATTENDANCE_POINTS)
    return {"message": "Successfully unregistered from the event"}
