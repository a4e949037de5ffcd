import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from .models import PRIORITIES

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _not_blank(value: str):
    cleaned = value.strip() if isinstance(value, str) else ""
    if not cleaned:
        raise ValueError("must not be empty")
    return cleaned


def _clean_tags(value: list[str] | None) -> list[str]:
    if not value:
        return []
    return [tag.strip() for tag in value if isinstance(tag, str) and tag.strip()]


# -- users -----------------------------------------------------------------


class UserSummary(BaseModel):
    id: int
    name: str
    email: str
    image: Optional[str] = None
    department: Optional[str] = None
    year: Optional[str] = None


class UserOut(BaseModel):
    id: int
    name: str
    email: str
    image: Optional[str] = None
    phone: Optional[str] = None
    student_id: Optional[str] = None
    department: Optional[str] = None
    year: Optional[str] = None
    bio: Optional[str] = None
    points: int
    created_at: datetime


class RegisterRequest(BaseModel):
    username: str
    email: str
    password: str

    @field_validator("username")
    @classmethod
    def validate_username(cls, value: str):
        cleaned = _not_blank(value)
        if len(cleaned) > 100:
            raise ValueError("Username must be at most 100 characters")
        return cleaned

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str):
        cleaned = value.strip().lower()
        if not EMAIL_RE.match(cleaned):
            raise ValueError("Invalid email")
        return cleaned

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str):
        if len(value) < 8:
            raise ValueError("Password must have at least 8 characters")
        return value


class VerifyRequest(BaseModel):
    email: str
    token: str


class LoginRequest(BaseModel):
    email_or_name: str
    password: str


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    student_id: Optional[str] = None
    department: Optional[str] = None
    year: Optional[str] = None
    bio: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: Optional[str]):
        return None if value is None else _not_blank(value)


# -- addresses -------------------------------------------------------------


class AddressCreate(BaseModel):
    label: Optional[str] = None
    street: str
    city: str
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    is_default: bool = False

    @field_validator("street", "city")
    @classmethod
    def must_not_be_empty(cls, value: str):
        return _not_blank(value)


class AddressUpdate(BaseModel):
    id: int
    label: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    is_default: Optional[bool] = None


class AddressOut(BaseModel):
    id: int
    label: Optional[str] = None
    street: str
    city: str
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: str
    is_default: bool
    created_at: datetime


# -- clubs -----------------------------------------------------------------


class ClubCreate(BaseModel):
    name: str
    description: str
    category: str
    is_public: bool = True
    max_members: Optional[int] = None
    tags: list[str] = []
    requirements: Optional[str] = None
    meeting_schedule: Optional[str] = None
    contact_email: Optional[str] = None
    logo: Optional[str] = None

    @field_validator("name", "description", "category")
    @classmethod
    def must_not_be_empty(cls, value: str):
        return _not_blank(value)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value: list[str]):
        return _clean_tags(value)


class ClubUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    is_public: Optional[bool] = None
    max_members: Optional[int] = None
    tags: Optional[list[str]] = None
    requirements: Optional[str] = None
    meeting_schedule: Optional[str] = None
    contact_email: Optional[str] = None
    logo: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_length(cls, value: Optional[str]):
        if value is not None and len(value.strip()) < 3:
            raise ValueError("Club name must be at least 3 characters long")
        return value.strip() if value is not None else None

    @field_validator("description")
    @classmethod
    def description_length(cls, value: Optional[str]):
        if value is not None and len(value.strip()) < 10:
            raise ValueError("Club description must be at least 10 characters long")
        return value.strip() if value is not None else None

    @field_validator("category")
    @classmethod
    def category_not_blank(cls, value: Optional[str]):
        return None if value is None else _not_blank(value)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value: Optional[list[str]]):
        return None if value is None else _clean_tags(value)


class OwnerOut(BaseModel):
    id: int
    name: str
    image: Optional[str] = None


class EventBrief(BaseModel):
    id: int
    title: str
    date: datetime
    venue: str


class ClubOut(BaseModel):
    id: int
    name: str
    description: str
    category: str
    logo: Optional[str] = None
    is_public: bool
    max_members: Optional[int] = None
    tags: list[str]
    requirements: Optional[str] = None
    meeting_schedule: Optional[str] = None
    contact_email: Optional[str] = None
    is_active: bool
    owner_id: int
    owner: OwnerOut
    member_count: int
    upcoming_event_count: int
    upcoming_events: list[EventBrief] = []
    created_at: datetime
    updated_at: datetime


class MemberOut(BaseModel):
    id: int
    club_id: int
    user_id: int
    role: str
    joined_at: datetime
    user: UserSummary


class MemberAdd(BaseModel):
    user_email: str
    role: str = "member"

    @field_validator("user_email")
    @classmethod
    def normalize_email(cls, value: str):
        return _not_blank(value).lower()


class MemberRoleUpdate(BaseModel):
    role: Optional[str] = None


class MembershipRequestCreate(BaseModel):
    message: Optional[str] = None


class MembershipRequestOut(BaseModel):
    id: int
    club_id: int
    user_id: int
    status: str
    message: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    user: UserSummary


class RequestStatusOut(BaseModel):
    has_active_request: bool
    request_id: Optional[int] = None


class RequestAction(BaseModel):
    action: Optional[str] = None


class MyClubOut(BaseModel):
    club: ClubOut
    membership_role: str
    joined_at: datetime


class MyClubsOut(BaseModel):
    success: bool = True
    clubs: list[MyClubOut]
    total_joined_clubs: int


class UserClubOut(BaseModel):
    id: int
    name: str
    category: str
    member_count: int
    upcoming_events: int
    recent_events: list[str]
    role: str
    joined_at: datetime


# -- events ----------------------------------------------------------------


class ClubRef(BaseModel):
    id: int
    name: str


class EventCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    venue: Optional[str] = None
    max_participants: Optional[int] = None
    category: Optional[str] = None
    registration_link: Optional[str] = None
    club_id: Optional[int] = None


class EventOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    date: datetime
    end_date: Optional[datetime] = None
    venue: str
    max_participants: Optional[int] = None
    category: Optional[str] = None
    registration_link: Optional[str] = None
    is_active: bool
    club_id: int
    club: ClubRef
    registration_count: int = 0


class RegistrationOut(BaseModel):
    id: int
    registered_at: datetime
    event: EventBrief


# -- announcements ---------------------------------------------------------


class AnnouncementCreate(BaseModel):
    title: str
    content: str
    priority: str = "normal"
    tags: list[str] = []
    is_published: bool = True

    @field_validator("title", "content")
    @classmethod
    def must_not_be_empty(cls, value: str):
        return _not_blank(value)

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, value: str):
        normalized = value.strip().lower()
        if normalized not in PRIORITIES:
            raise ValueError("priority must be urgent, high, normal or low")
        return normalized

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value: list[str]):
        return _clean_tags(value)


class AnnouncementOut(BaseModel):
    id: int
    club_id: int
    club_name: str
    author_id: int
    author_name: str
    title: str
    content: str
    priority: str
    tags: list[str]
    is_published: bool
    created_at: datetime


class ClubDetail(BaseModel):
    club: ClubOut
    members: list[MemberOut]
    events: list[EventOut]
    announcements: list[AnnouncementOut]
    announcement_count: int


# -- spreadsheet feeds -----------------------------------------------------


class SheetEvent(BaseModel):
    id: str
    title: str
    description: str = ""
    date: str = ""
    end_date: str = ""
    location: str = ""
    max_participants: Optional[int] = None
    current_participants: int = 0
    category: str = "General"
    club_name: str = "Unknown Club"
    club_slug: str = "unknown"
    club_id: Optional[int] = None
    image: str = ""
    registration_link: str = ""


class SheetAnnouncement(BaseModel):
    id: str
    title: str
    content: str = ""
    club: str = "General"
    club_slug: str = "general"
    club_id: Optional[int] = None
    priority: str = "normal"
    author: str = "Admin"
    created_at: str = ""
    tags: list[str] = []
    is_published: bool = True


class FeedItem(BaseModel):
    id: str
    source: str
    title: str
    content: str
    priority: str
    author: str
    tags: list[str]
    created_at: str


# -- suggestions -----------------------------------------------------------


class SuggestRequest(BaseModel):
    interest: str

    @field_validator("interest")
    @classmethod
    def must_not_be_empty(cls, value: str):
        return _not_blank(value)


class ClubSuggestion(BaseModel):
    club_name: str
    club_id: int
    reason: str
    match_score: int
    source: str = "heuristic"


class SearchRequest(BaseModel):
    query: str
    categories: list[str] = []
    tags: list[str] = []

    @field_validator("query")
    @classmethod
    def must_not_be_empty(cls, value: str):
        return _not_blank(value)


class SearchHit(BaseModel):
    club: ClubOut
    relevance_score: float


class SearchResults(BaseModel):
    clubs: list[SearchHit]
    total_results: int
    query: str


class EventSuggestionRequest(BaseModel):
    event_type: str = "Workshop"
    custom_goals: Optional[str] = None


class Budget(BaseModel):
    min: int
    max: int


class EventIdea(BaseModel):
    id: str
    title: str
    description: str
    suggested_date: str
    estimated_duration: str
    venue: str
    expected_participants: int
    difficulty: str
    category: str
    tags: list[str]
    materials: list[str]
    budget: Budget
    success_tips: list[str]
    related_skills: list[str]
    ai_reasoning: str
    match_score: int


# -- profile ---------------------------------------------------------------


class PendingUserOut(BaseModel):
    email: str
    name: str


class RegisterOut(BaseModel):
    user: PendingUserOut
    message: str
    requires_verification: bool = True


class ProfileMembership(BaseModel):
    club: ClubRef
    role: str
    joined_at: datetime


class ProfileOut(BaseModel):
    user: UserOut
    addresses: list[AddressOut]
    memberships: list[ProfileMembership]
    registrations: list[RegistrationOut]
    owned_clubs: list[ClubRef]


# -- leaderboard -----------------------------------------------------------


class LeaderboardUser(BaseModel):
    rank: int
    id: int
    name: str
    department: Optional[str] = None
    points: int
    club_count: int


class LeaderboardClub(BaseModel):
    rank: int
    id: int
    name: str
    category: str
    member_count: int
    total_points: int
    avg_points_per_member: float


class PointsRule(BaseModel):
    activity: str
    points: int
    description: str


class Leaderboard(BaseModel):
    users: list[LeaderboardUser]
    clubs: list[LeaderboardClub]
    points_breakdown: list[PointsRule]
