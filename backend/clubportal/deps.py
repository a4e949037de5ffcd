from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from .context import Identity, get_identity
from .db import get_session
from .errors import Forbidden, NotFound, Unauthorized
from .models import Club, ClubMember, User


def get_db():
    with get_session() as session:
        yield session


def get_current_user(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> User:
    if identity.anonymous:
        raise Unauthorized()

    query = select(User)
    if identity.user_id:
        query = query.where(User.id == identity.user_id)
    else:
        query = query.where(User.email == identity.email)

    user = db.execute(query).scalar_one_or_none()
    if not user:
        raise Unauthorized("User not found")
    return user


def get_club_or_404(db: Session, club_id: int, active_only: bool = False) -> Club:
    club = db.get(Club, club_id)
    if not club or (active_only and not club.is_active):
        raise NotFound("Club not found")
    return club


def get_membership(db: Session, club_id: int, user_id: int) -> ClubMember | None:
    return db.execute(
        select(ClubMember).where(
            ClubMember.club_id == club_id,
            ClubMember.user_id == user_id,
        )
    ).scalar_one_or_none()


def ensure_club_owner(club: Club, user: User, message: str = "Only club owners can manage this club") -> None:
    if club.owner_id != user.id:
        raise Forbidden(message)


def ensure_event_manager(db: Session, club: Club, user: User) -> None:
    """Owners and members holding the admin role may manage a club's events."""

    if club.owner_id == user.id:
        return
    membership = get_membership(db, club.id, user.id)
    if not membership or membership.role != "admin":
        raise Forbidden("You do not have permission to create events for this club")


def ensure_announcer(db: Session, club: Club, user: User) -> None:
    if club.owner_id == user.id:
        return
    membership = get_membership(db, club.id, user.id)
    if not membership or membership.role not in {"admin", "moderator"}:
        raise Forbidden("Only club owners, admins and moderators can post announcements")
