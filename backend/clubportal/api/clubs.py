import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from .. import sheets
from ..deps import ensure_announcer, ensure_club_owner, get_club_or_404, get_current_user, get_db
from ..errors import Conflict
from ..models import Announcement, Club, ClubMember, User
from ..schemas import (
    AnnouncementCreate,
    AnnouncementOut,
    ClubCreate,
    ClubDetail,
    ClubOut,
    ClubUpdate,
    FeedItem,
)
from ..services import announcement_out, club_detail, club_out, flush_or_conflict

logger = logging.getLogger(__name__)

router = APIRouter()

DUPLICATE_NAME = "A club with this name already exists"


@router.post("/api/clubs", response_model=ClubOut, status_code=201)
def create_club(
    payload: ClubCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if db.execute(select(Club.id).where(Club.name == payload.name)).first():
        raise Conflict(DUPLICATE_NAME)

    club = Club(owner_id=user.id, **payload.model_dump())
    db.add(club)
    flush_or_conflict(db, DUPLICATE_NAME)
    db.add(ClubMember(club_id=club.id, user_id=user.id, role="admin"))
    flush_or_conflict(db, DUPLICATE_NAME)
    db.refresh(club)
    logger.info("Club %s created by user %s", club.id, user.id)
    return club_out(db, club)


@router.get("/api/clubs", response_model=list[ClubOut])
def list_clubs(
    db: Session = Depends(get_db),
    category: str | None = None,
    search: str | None = None,
):
    category = category.strip() if isinstance(category, str) else None
    search = search.strip() if isinstance(search, str) else None

    stmt = select(Club).where(Club.is_active == True)  # noqa: E712
    if category and category.lower() != "all":
        stmt = stmt.where(Club.category == category)
    if search:
        like_pattern = f"%{search.lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(Club.name).like(like_pattern),
                func.lower(Club.description).like(like_pattern),
            )
        )

    clubs = db.execute(stmt.order_by(Club.created_at.desc(), Club.id.desc())).scalars().all()
    return [club_out(db, club) for club in clubs]


@router.get("/api/clubs/{club_id}", response_model=ClubDetail)
def get_club(
    club_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    club = get_club_or_404(db, club_id, active_only=True)
    return club_detail(db, club)


@router.patch("/api/clubs/{club_id}", response_model=ClubOut)
def update_club(
    club_id: int,
    payload: ClubUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    club = get_club_or_404(db, club_id)
    ensure_club_owner(club, user, "Only club owners can update the club")

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name") and changes["name"] != club.name:
        taken = db.execute(
            select(Club.id).where(Club.name == changes["name"], Club.id != club.id)
        ).first()
        if taken:
            raise Conflict(DUPLICATE_NAME)
    for field, value in changes.items():
        if value is None and field in ("name", "description", "category", "is_public", "tags"):
            continue
        setattr(club, field, value)
    flush_or_conflict(db, DUPLICATE_NAME)
    db.refresh(club)
    return club_out(db, club)


@router.delete("/api/clubs/{club_id}")
def delete_club(
    club_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    club = get_club_or_404(db, club_id)
    ensure_club_owner(club, user, "Only club owners can delete the club")
    db.delete(club)
    logger.info("Club %s deleted by user %s", club_id, user.id)
    return {"message": "Club deleted successfully"}


@router.post("/api/clubs/{club_id}/announcements", response_model=AnnouncementOut, status_code=201)
def create_announcement(
    club_id: int,
    payload: AnnouncementCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    club = get_club_or_404(db, club_id, active_only=True)
    ensure_announcer(db, club, user)
    announcement = Announcement(club_id=club.id, author_id=user.id, **payload.model_dump())
    db.add(announcement)
    db.flush()
    db.refresh(announcement)
    return announcement_out(announcement)


@router.get("/api/clubs/{club_id}/announcements", response_model=list[FeedItem])
def club_announcement_feed(club_id: int, db: Session = Depends(get_db)):
    club = get_club_or_404(db, club_id, active_only=True)
    rows = (
        db.execute(
            select(Announcement).where(
                Announcement.club_id == club.id,
                Announcement.is_published == True,  # noqa: E712
            )
        )
        .scalars()
        .all()
    )
    feed = [
        FeedItem(
            id=f"db-{a.id}",
            source="database",
            title=a.title,
            content=a.content,
            priority=a.priority,
            author=a.author.name,
            tags=list(a.tags or []),
            created_at=a.created_at.replace(microsecond=0).isoformat(),
        )
        for a in rows
    ]

    try:
        sheet_rows = sheets.load_announcements(db)
    except sheets.SheetUnavailable as exc:
        logger.warning("Announcements sheet unavailable for club %s feed: %s", club.id, exc)
        sheet_rows = []
    feed.extend(
        FeedItem(
            id=f"sheet-{a.id}",
            source="sheet",
            title=a.title,
            content=a.content,
            priority=a.priority,
            author=a.author,
            tags=a.tags,
            created_at=a.created_at,
        )
        for a in sheet_rows
        if a.club_id == club.id and a.is_published
    )

    # raw sheet dates that never parsed sort after every ISO timestamp
    feed.sort(key=lambda item: (item.created_at[:4].isdigit(), item.created_at), reverse=True)
    return feed
