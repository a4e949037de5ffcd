import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends
from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from ..auth_utils import VERIFY_TOKEN_TTL_SECONDS, generate_token, hash_password, hash_token, token_matches
from ..deps import get_current_user, get_db
from ..errors import BadRequest, Conflict, InternalError, NotFound
from ..models import Address, Club, ClubMember, Event, PendingUser, Registration, User
from ..notifications import send_verification_email
from ..schemas import (
    AddressOut,
    ClubRef,
    EventBrief,
    MyClubOut,
    MyClubsOut,
    PendingUserOut,
    ProfileMembership,
    ProfileOut,
    ProfileUpdate,
    RegisterOut,
    RegisterRequest,
    RegistrationOut,
    UserClubOut,
    UserOut,
    VerifyRequest,
)
from ..services import club_out, flush_or_conflict, member_count, upcoming_events_query, user_out

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/user", response_model=RegisterOut, status_code=201)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    email = payload.email
    username = payload.username

    if db.execute(select(User.id).where(User.email == email)).first():
        raise Conflict("User with this email already exists")
    if db.execute(select(User.id).where(User.name == username)).first():
        raise Conflict("User with this username already exists")

    # a fresh registration replaces the previous unverified one for this email
    db.execute(delete(PendingUser).where(PendingUser.email == email))
    if db.execute(select(PendingUser.id).where(PendingUser.name == username)).first():
        raise Conflict("User with this username already exists")

    token = generate_token()
    db.add(
        PendingUser(
            email=email,
            name=username,
            password_hash=hash_password(payload.password),
            token_hash=hash_token(token),
            expires_at=datetime.utcnow() + timedelta(seconds=VERIFY_TOKEN_TTL_SECONDS),
        )
    )
    flush_or_conflict(db, "User with this email already exists")

    try:
        send_verification_email(email, token)
    except Exception as exc:
        # raising rolls the pending row back with the rest of the transaction
        logger.exception("Failed to send verification email to %s", email)
        raise InternalError("Failed to send verification email. Please try again.") from exc

    return RegisterOut(
        user=PendingUserOut(email=email, name=username),
        message="Account registration initiated! Please check your email to verify your account and complete the registration.",
    )


@router.post("/api/user/verify", response_model=UserOut, status_code=201)
def verify(payload: VerifyRequest, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    pending = db.execute(select(PendingUser).where(PendingUser.email == email)).scalar_one_or_none()
    if (
        not pending
        or pending.expires_at < datetime.utcnow()
        or not token_matches(payload.token.strip(), pending.token_hash)
    ):
        raise BadRequest("Invalid or expired verification token")

    clash = db.execute(
        select(User.id).where(or_(User.email == pending.email, User.name == pending.name))
    ).first()
    if clash:
        raise Conflict("User with this email or username already exists")

    user = User(email=pending.email, name=pending.name, password_hash=pending.password_hash)
    db.add(user)
    db.delete(pending)
    flush_or_conflict(db, "User with this email or username already exists")
    db.refresh(user)
    logger.info("Verified account %s", user.email)
    return user_out(user)


@router.get("/api/user/profile", response_model=ProfileOut)
def get_profile(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    addresses = (
        db.execute(
            select(Address)
            .where(Address.user_id == user.id)
            .order_by(Address.is_default.desc(), Address.created_at.asc())
        )
        .scalars()
        .all()
    )
    memberships = (
        db.execute(
            select(ClubMember)
            .where(ClubMember.user_id == user.id)
            .order_by(ClubMember.joined_at.desc())
        )
        .scalars()
        .all()
    )
    registrations = (
        db.execute(
            select(Registration)
            .where(Registration.user_id == user.id)
            .order_by(Registration.registered_at.desc())
            .limit(10)
        )
        .scalars()
        .all()
    )
    owned = db.execute(select(Club).where(Club.owner_id == user.id).order_by(Club.name.asc())).scalars().all()

    return ProfileOut(
        user=user_out(user),
        addresses=[AddressOut.model_validate(a, from_attributes=True) for a in addresses],
        memberships=[
            ProfileMembership(club=ClubRef(id=m.club.id, name=m.club.name), role=m.role, joined_at=m.joined_at)
            for m in memberships
        ],
        registrations=[
            RegistrationOut(
                id=r.id,
                registered_at=r.registered_at,
                event=EventBrief(id=r.event.id, title=r.event.title, date=r.event.date, venue=r.event.venue),
            )
            for r in registrations
        ],
        owned_clubs=[ClubRef(id=c.id, name=c.name) for c in owned],
    )


@router.put("/api/user/profile", response_model=UserOut)
def update_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name") and changes["name"] != user.name:
        taken = db.execute(
            select(User.id).where(User.name == changes["name"], User.id != user.id)
        ).first()
        if taken:
            raise Conflict("User with this username already exists")
    for field, value in changes.items():
        if field == "name" and value is None:
            continue
        setattr(user, field, value)
    flush_or_conflict(db, "User with this username already exists")
    db.refresh(user)
    return user_out(user)


@router.get("/api/user/clubs", response_model=MyClubsOut)
def my_clubs(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    memberships = (
        db.execute(
            select(ClubMember)
            .join(Club, Club.id == ClubMember.club_id)
            .where(ClubMember.user_id == user.id, Club.is_active == True)  # noqa: E712
            .order_by(ClubMember.joined_at.desc())
        )
        .scalars()
        .all()
    )
    clubs = [
        MyClubOut(club=club_out(db, m.club), membership_role=m.role, joined_at=m.joined_at)
        for m in memberships
    ]
    return MyClubsOut(clubs=clubs, total_joined_clubs=len(clubs))


@router.get("/api/user/{user_id}/clubs", response_model=list[UserClubOut])
def user_clubs(user_id: int, db: Session = Depends(get_db)):
    if not db.get(User, user_id):
        raise NotFound("User not found")

    now = datetime.utcnow()
    memberships = (
        db.execute(
            select(ClubMember)
            .where(ClubMember.user_id == user_id)
            .order_by(ClubMember.joined_at.desc())
        )
        .scalars()
        .all()
    )
    results = []
    for membership in memberships:
        club = membership.club
        upcoming = (
            db.execute(select(func.count()).select_from(upcoming_events_query(club.id).subquery())).scalar()
            or 0
        )
        recent = (
            db.execute(
                select(Event.title)
                .where(
                    Event.club_id == club.id,
                    Event.date >= now - timedelta(days=30),
                    Event.date <= now,
                )
                .order_by(Event.date.desc())
            )
            .scalars()
            .all()
        )
        results.append(
            UserClubOut(
                id=club.id,
                name=club.name,
                category=club.category,
                member_count=member_count(db, club.id),
                upcoming_events=upcoming,
                recent_events=list(recent),
                role=membership.role,
                joined_at=membership.joined_at,
            )
        )
    return results
