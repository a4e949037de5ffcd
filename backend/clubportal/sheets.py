import csv
import io
import logging
import re
from datetime import datetime, time, timezone

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import settings
from .models import PRIORITIES, Club
from .schemas import SheetAnnouncement, SheetEvent

logger = logging.getLogger(__name__)

PUBLISHED_STATUSES = {"published", "publish", "yes"}
DEMO_MESSAGE = "Using demo data - Google Sheets not accessible"
DEFAULT_TIME = time(12, 0)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})(?:\s+(.+))?$")
ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[ T](.+))?$")
LEADING_INT = re.compile(r"^\s*(\d+)")

TIME_FORMATS = ("%H:%M:%S", "%H:%M", "%I:%M %p", "%I:%M:%S %p", "%I:%M%p", "%I %p", "%I%p")
TEXT_DATE_FORMATS = (
    "%B %d, %Y %H:%M",
    "%B %d, %Y",
    "%b %d, %Y %H:%M",
    "%b %d, %Y",
    "%d %B %Y %H:%M",
    "%d %B %Y",
    "%d %b %Y %H:%M",
    "%d %b %Y",
    "%a, %d %b %Y %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
)


class SheetUnavailable(Exception):
    pass


# -- dates -----------------------------------------------------------------


def _parse_time(text: str | None) -> time | None:
    if not text:
        return DEFAULT_TIME
    cleaned = text.strip().upper()
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).time()
        except ValueError:
            continue
    return None


def _build(year: str, month: str, day: str, clock: str | None) -> datetime | None:
    parsed_time = _parse_time(clock)
    if parsed_time is None:
        return None
    try:
        return datetime.combine(datetime(int(year), int(month), int(day)), parsed_time)
    except ValueError:
        return None


def _parse_native(raw: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
    if parsed is None:
        for fmt in TEXT_DATE_FORMATS:
            try:
                parsed = datetime.strptime(raw, fmt)
                break
            except ValueError:
                continue
    if parsed is not None and parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def normalize_sheet_date(raw: str | None) -> str:
    # DD/MM/YYYY is day-first; unparseable text passes through
    raw = (raw or "").strip()
    if not raw:
        return ""

    slash = SLASH_DATE.match(raw)
    if slash:
        day, month, year, clock = slash.groups()
        parsed = _build(year, month, day, clock)
        return parsed.isoformat() if parsed else raw

    iso = ISO_DATE.match(raw)
    if iso:
        year, month, day, clock = iso.groups()
        parsed = _build(year, month, day, clock)
        if parsed:
            return parsed.isoformat()

    parsed = _parse_native(raw)
    return parsed.isoformat() if parsed else raw


# -- rows ------------------------------------------------------------------


def parse_rows(csv_text: str) -> list[dict[str, str]]:
    reader = csv.DictReader(io.StringIO(csv_text.lstrip("\ufeff")))
    if reader.fieldnames:
        reader.fieldnames = [(name or "").strip() for name in reader.fieldnames]
    rows = []
    for row in reader:
        cleaned = {key: (value or "").strip() for key, value in row.items() if key}
        if any(cleaned.values()):
            rows.append(cleaned)
    return rows


def is_published(row: dict[str, str]) -> bool:
    return row.get("Publish Status", "").strip().lower() in PUBLISHED_STATUSES


def first_value(row: dict[str, str], *columns: str, default: str = "") -> str:
    for column in columns:
        value = row.get(column, "").strip()
        if value:
            return value
    return default


def slugify(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())


def parse_int(value: str) -> int | None:
    match = LEADING_INT.match(value or "")
    if not match:
        return None
    number = int(match.group(1))
    return number or None


def club_directory(db: Session) -> dict[str, int]:
    """Lowercased club name -> club id, the join key for sheet rows."""

    rows = db.execute(select(Club.id, Club.name)).all()
    return {name.strip().lower(): club_id for club_id, name in rows}


def parse_events(csv_text: str, clubs: dict[str, int] | None = None) -> list[SheetEvent]:
    clubs = clubs or {}
    events = []
    for index, row in enumerate(parse_rows(csv_text), start=1):
        title = row.get("Event Name", "")
        if not title or not is_published(row):
            continue
        club_name = first_value(row, "Event Organiser", default="Unknown Club")
        events.append(
            SheetEvent(
                id=first_value(row, "Event ID", default=f"event-{index}"),
                title=title,
                description=row.get("Event Description", ""),
                date=normalize_sheet_date(row.get("Event Date and Time")),
                location=row.get("Venue", ""),
                max_participants=parse_int(row.get("Total Allowed Participants", "")),
                category=first_value(row, "Event Type", default="General"),
                club_name=club_name,
                club_slug=slugify(club_name),
                club_id=clubs.get(club_name.lower()),
                image=row.get("Cover Image", ""),
                registration_link=first_value(row, "Event Registration/Info Link", "External RSVP Link"),
            )
        )
    return events


def parse_announcements(csv_text: str, clubs: dict[str, int] | None = None) -> list[SheetAnnouncement]:
    clubs = clubs or {}
    announcements = []
    for index, row in enumerate(parse_rows(csv_text), start=1):
        title = row.get("Title", "")
        if not title or not is_published(row):
            continue
        club_name = first_value(row, "Club", "Organizer", default="General")
        priority = row.get("Priority", "").lower() or "normal"
        if priority not in PRIORITIES:
            priority = "normal"
        tags = [tag.strip() for tag in row.get("Tags", "").split(",") if tag.strip()]
        created_at = normalize_sheet_date(first_value(row, "Created Date", "Date"))
        announcements.append(
            SheetAnnouncement(
                id=first_value(row, "Announcement ID", default=f"announcement-{index}"),
                title=title,
                content=first_value(row, "Content", "Description"),
                club=club_name,
                club_slug=slugify(club_name),
                club_id=clubs.get(club_name.lower()),
                priority=priority,
                author=first_value(row, "Author", "Created By", default="Admin"),
                created_at=created_at or datetime.utcnow().replace(microsecond=0).isoformat(),
                tags=tags,
            )
        )
    return announcements


# -- fetching --------------------------------------------------------------


def fetch_csv(url: str, timeout: float | None = None, transport: httpx.BaseTransport | None = None) -> str:
    if not url:
        raise SheetUnavailable("Spreadsheet URL is not configured")
    try:
        with httpx.Client(
            timeout=timeout or settings.sheet_timeout_seconds,
            follow_redirects=True,
            transport=transport,
        ) as client:
            response = client.get(url, headers=NO_CACHE_HEADERS)
            response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        if status in (400, 403):
            logger.warning("Sheet %s refused access (%s); is it published to the web?", url, status)
        elif status == 404:
            logger.warning("Sheet %s not found", url)
        raise SheetUnavailable(f"HTTP error {status}") from exc
    except httpx.HTTPError as exc:
        raise SheetUnavailable(str(exc) or exc.__class__.__name__) from exc
    return response.text


def load_events(db: Session) -> list[SheetEvent]:
    csv_text = fetch_csv(settings.events_csv_url)
    if not csv_text.strip():
        logger.warning("Events sheet returned an empty CSV")
        return []
    try:
        events = parse_events(csv_text, club_directory(db))
    except csv.Error as exc:
        raise SheetUnavailable(f"Malformed events CSV: {exc}") from exc
    logger.info("Parsed %d published events from sheet", len(events))
    return events


def load_announcements(db: Session) -> list[SheetAnnouncement]:
    csv_text = fetch_csv(settings.announcements_csv_url)
    if not csv_text.strip():
        logger.warning("Announcements sheet returned an empty CSV")
        return []
    try:
        announcements = parse_announcements(csv_text, club_directory(db))
    except csv.Error as exc:
        raise SheetUnavailable(f"Malformed announcements CSV: {exc}") from exc
    logger.info("Parsed %d published announcements from sheet", len(announcements))
    return announcements


# -- fallback content ------------------------------------------------------

DEMO_EVENTS = [
    SheetEvent(
        id="demo-1",
        title="Demo Event - Sheet Not Connected",
        description="This is a demo event showing because the events sheet is not accessible. Please check the setup instructions.",
        date="2025-09-01T14:00:00",
        location="Setup Required",
        max_participants=100,
        category="Setup",
        club_name="System Message",
        club_slug="system",
    ),
    SheetEvent(
        id="demo-2",
        title="Sample Gaming Tournament",
        description="This is how your events will look once connected to Google Sheets",
        date="2025-09-15T10:00:00",
        location="Gaming Arena",
        max_participants=50,
        current_participants=25,
        category="Gaming",
        club_name="Gaming Club",
        club_slug="gaming-club",
        registration_link="https://example.com/register",
    ),
    SheetEvent(
        id="demo-3",
        title="Tech Workshop Example",
        description="Learn about modern web development technologies",
        date="2025-09-20T09:00:00",
        location="Tech Lab",
        max_participants=30,
        current_participants=15,
        category="Technology",
        club_name="Tech Club",
        club_slug="tech-club",
    ),
]

DEMO_ANNOUNCEMENTS = [
    SheetAnnouncement(
        id="demo-announcement-1",
        title="Announcements Sheet Not Connected",
        content="This is a demo announcement showing because the announcements sheet is not accessible.",
        club="System Message",
        club_slug="system-message",
        priority="high",
        author="System",
        created_at="2025-09-01T12:00:00",
        tags=["setup"],
    ),
    SheetAnnouncement(
        id="demo-announcement-2",
        title="Welcome Week",
        content="Visit the club fair on the main quad to meet every club on campus.",
        club="General",
        club_slug="general",
        created_at="2025-09-02T12:00:00",
        tags=["welcome", "clubs"],
    ),
]
