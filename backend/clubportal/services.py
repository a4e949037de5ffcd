from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import Conflict
from .models import Announcement, Club, ClubMember, Event, MembershipRequest, Registration, User
from .schemas import (
    AnnouncementOut,
    ClubDetail,
    ClubOut,
    ClubRef,
    EventBrief,
    EventOut,
    MemberOut,
    MembershipRequestOut,
    OwnerOut,
    UserOut,
    UserSummary,
)

EVENT_ATTENDANCE_POINTS = 10
EVENT_ORGANIZATION_POINTS = 50


def flush_or_conflict(db: Session, message: str) -> None:
    """Flush pending writes, turning a uniqueness violation into a 409."""

    try:
        db.flush()
    except IntegrityError as exc:
        raise Conflict(message) from exc


def user_summary(user: User) -> UserSummary:
    return UserSummary(
        id=user.id,
        name=user.name,
        email=user.email,
        image=user.image,
        department=user.department,
        year=user.year,
    )


def user_out(user: User) -> UserOut:
    return UserOut.model_validate(user, from_attributes=True)


def award_points(user: User, delta: int) -> None:
    user.points = max((user.points or 0) + delta, 0)


def serialize_event(event: Event, registrations: int) -> EventOut:
    return EventOut(
        id=event.id,
        title=event.title,
        description=event.description,
        date=event.date,
        end_date=event.end_date,
        venue=event.venue,
        max_participants=event.max_participants,
        category=event.category,
        registration_link=event.registration_link,
        is_active=event.is_active,
        club_id=event.club_id,
        club=ClubRef(id=event.club.id, name=event.club.name),
        registration_count=registrations or 0,
    )


def base_event_query():
    reg_count = func.count(Registration.id).label("registration_count")
    stmt = (
        select(Event, reg_count)
        .outerjoin(Registration)
        .where(Event.is_active == True)  # noqa: E712
        .group_by(Event.id)
    )
    return stmt, reg_count


def registration_count(db: Session, event_id: int) -> int:
    return (
        db.execute(
            select(func.count(Registration.id)).where(Registration.event_id == event_id)
        ).scalar()
        or 0
    )


def member_count(db: Session, club_id: int) -> int:
    return (
        db.execute(
            select(func.count(ClubMember.id)).where(ClubMember.club_id == club_id)
        ).scalar()
        or 0
    )


def upcoming_events_query(club_id: int):
    return select(Event).where(
        Event.club_id == club_id,
        Event.is_active == True,  # noqa: E712
        Event.date >= datetime.utcnow(),
    )


def club_out(db: Session, club: Club, upcoming_limit: int = 3) -> ClubOut:
    upcoming_count = (
        db.execute(
            select(func.count()).select_from(upcoming_events_query(club.id).subquery())
        ).scalar()
        or 0
    )
    upcoming = []
    if upcoming_limit:
        upcoming = (
            db.execute(
                upcoming_events_query(club.id).order_by(Event.date.asc()).limit(upcoming_limit)
            )
            .scalars()
            .all()
        )
    return ClubOut(
        id=club.id,
        name=club.name,
        description=club.description,
        category=club.category,
        logo=club.logo,
        is_public=club.is_public,
        max_members=club.max_members,
        tags=list(club.tags or []),
        requirements=club.requirements,
        meeting_schedule=club.meeting_schedule,
        contact_email=club.contact_email,
        is_active=club.is_active,
        owner_id=club.owner_id,
        owner=OwnerOut(id=club.owner.id, name=club.owner.name, image=club.owner.image),
        member_count=member_count(db, club.id),
        upcoming_event_count=upcoming_count,
        upcoming_events=[
            EventBrief(id=e.id, title=e.title, date=e.date, venue=e.venue) for e in upcoming
        ],
        created_at=club.created_at,
        updated_at=club.updated_at,
    )


def member_out(member: ClubMember) -> MemberOut:
    return MemberOut(
        id=member.id,
        club_id=member.club_id,
        user_id=member.user_id,
        role=member.role,
        joined_at=member.joined_at,
        user=user_summary(member.user),
    )


def request_out(request: MembershipRequest) -> MembershipRequestOut:
    return MembershipRequestOut(
        id=request.id,
        club_id=request.club_id,
        user_id=request.user_id,
        status=request.status,
        message=request.message,
        created_at=request.created_at,
        updated_at=request.updated_at,
        user=user_summary(request.user),
    )


def announcement_out(announcement: Announcement) -> AnnouncementOut:
    return AnnouncementOut(
        id=announcement.id,
        club_id=announcement.club_id,
        club_name=announcement.club.name,
        author_id=announcement.author_id,
        author_name=announcement.author.name,
        title=announcement.title,
        content=announcement.content,
        priority=announcement.priority,
        tags=list(announcement.tags or []),
        is_published=announcement.is_published,
        created_at=announcement.created_at,
    )


def club_detail(db: Session, club: Club) -> ClubDetail:
    summary = club_out(db, club)
    members = (
        db.execute(
            select(ClubMember)
            .where(ClubMember.club_id == club.id)
            .order_by(ClubMember.joined_at.asc(), ClubMember.id.asc())
        )
        .scalars()
        .all()
    )
    stmt, _ = base_event_query()
    stmt = stmt.where(Event.club_id == club.id).order_by(Event.date.asc()).limit(10)
    events = [serialize_event(event, regs) for event, regs in db.execute(stmt).all()]

    published = select(Announcement).where(
        Announcement.club_id == club.id,
        Announcement.is_published == True,  # noqa: E712
    )
    announcements = (
        db.execute(published.order_by(Announcement.created_at.desc()).limit(5))
        .scalars()
        .all()
    )
    announcement_count = (
        db.execute(select(func.count()).select_from(published.subquery())).scalar() or 0
    )
    return ClubDetail(
        club=summary,
        members=[member_out(m) for m in members],
        events=events,
        announcements=[announcement_out(a) for a in announcements],
        announcement_count=announcement_count,
    )
