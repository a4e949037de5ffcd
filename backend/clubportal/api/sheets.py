import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from .. import sheets
from ..deps import get_db
from ..errors import NotFound, UpstreamError

logger = logging.getLogger(__name__)

router = APIRouter()


def _no_cache(response: Response) -> None:
    response.headers.update(sheets.NO_CACHE_HEADERS)


@router.get("/api/events/csv")
def sheet_events(response: Response, db: Session = Depends(get_db)):
    _no_cache(response)
    try:
        events = sheets.load_events(db)
    except sheets.SheetUnavailable as exc:
        logger.warning("Events sheet unavailable, serving demo events: %s", exc)
        return {
            "events": [e.model_dump() for e in sheets.DEMO_EVENTS],
            "message": sheets.DEMO_MESSAGE,
        }
    return {"events": [e.model_dump() for e in events]}


@router.get("/api/events/csv/{sheet_id}")
def sheet_event(sheet_id: str, response: Response, db: Session = Depends(get_db)):
    _no_cache(response)
    try:
        events = sheets.load_events(db)
    except sheets.SheetUnavailable as exc:
        raise UpstreamError(f"Failed to fetch events sheet: {exc}") from exc
    event = next((e for e in events if e.id == sheet_id), None)
    if not event:
        raise NotFound("Event not found")
    return {"success": True, "event": event.model_dump()}


@router.get("/api/announcements/csv")
def sheet_announcements(response: Response, db: Session = Depends(get_db)):
    _no_cache(response)
    try:
        announcements = sheets.load_announcements(db)
    except sheets.SheetUnavailable as exc:
        logger.warning("Announcements sheet unavailable, serving demo announcements: %s", exc)
        return {
            "announcements": [a.model_dump() for a in sheets.DEMO_ANNOUNCEMENTS],
            "success": True,
            "total": len(sheets.DEMO_ANNOUNCEMENTS),
            "message": sheets.DEMO_MESSAGE,
        }
    return {
        "announcements": [a.model_dump() for a in announcements],
        "success": True,
        "total": len(announcements),
    }
