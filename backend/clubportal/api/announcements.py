from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..deps import get_current_user, get_db
from ..errors import BadRequest, Forbidden, NotFound
from ..models import PRIORITIES, Announcement, Club, User
from ..schemas import AnnouncementOut
from ..services import announcement_out

router = APIRouter()


@router.get("/api/announcements", response_model=list[AnnouncementOut])
def list_announcements(
    club_id: int | None = None,
    priority: str | None = None,
    db: Session = Depends(get_db),
):
    stmt = (
        select(Announcement)
        .join(Club, Club.id == Announcement.club_id)
        .where(
            Announcement.is_published == True,  # noqa: E712
            Club.is_active == True,  # noqa: E712
        )
    )
    if club_id is not None:
        stmt = stmt.where(Announcement.club_id == club_id)
    if priority:
        priority = priority.strip().lower()
        if priority not in PRIORITIES:
            raise BadRequest("priority must be urgent, high, normal or low")
        stmt = stmt.where(Announcement.priority == priority)

    rows = db.execute(stmt.order_by(Announcement.created_at.desc(), Announcement.id.desc())).scalars().all()
    return [announcement_out(a) for a in rows]


@router.delete("/api/announcements/{announcement_id}")
def delete_announcement(
    announcement_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    announcement = db.get(Announcement, announcement_id)
    if not announcement:
        raise NotFound("Announcement not found")
    if user.id not in (announcement.author_id, announcement.club.owner_id):
        raise Forbidden("Only the author or the club owner can delete this announcement")
    db.delete(announcement)
    return {"message": "Announcement deleted successfully"}
