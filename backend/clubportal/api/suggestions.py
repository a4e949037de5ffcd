import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .. import genai, suggestions
from ..config import settings
from ..deps import ensure_event_manager, get_club_or_404, get_current_user, get_db
from ..errors import NotFound
from ..models import Club, Event, User
from ..schemas import (
    ClubSuggestion,
    EventIdea,
    EventSuggestionRequest,
    SearchHit,
    SearchRequest,
    SearchResults,
    SuggestRequest,
)
from ..services import club_out, member_count, upcoming_events_query

logger = logging.getLogger(__name__)

router = APIRouter()


def club_candidate(db: Session, club: Club) -> suggestions.ClubCandidate:
    upcoming = (
        db.execute(select(func.count()).select_from(upcoming_events_query(club.id).subquery())).scalar()
        or 0
    )
    return suggestions.ClubCandidate(
        id=club.id,
        name=club.name,
        description=club.description or "",
        category=club.category or "",
        tags=list(club.tags or []),
        requirements=club.requirements or "",
        meeting_schedule=club.meeting_schedule or "",
        member_count=member_count(db, club.id),
        upcoming_event_count=upcoming,
    )


def active_candidates(db: Session) -> list[suggestions.ClubCandidate]:
    clubs = (
        db.execute(select(Club).where(Club.is_active == True).order_by(Club.id.asc()))  # noqa: E712
        .scalars()
        .all()
    )
    return [club_candidate(db, club) for club in clubs]


@router.post("/api/clubs/suggest", response_model=ClubSuggestion)
def suggest_club(payload: SuggestRequest, db: Session = Depends(get_db)):
    interest = payload.interest.strip()
    candidates = active_candidates(db)
    if not candidates:
        raise NotFound("No clubs available for suggestions")

    if settings.ai_configured:
        try:
            answer = genai.suggest_club(interest, [c.as_dict() for c in candidates])
            return ClubSuggestion(source="ai", **answer)
        except genai.GenAIError as exc:
            logger.warning("AI club suggestion failed, using keyword matching: %s", exc)

    answer = suggestions.suggest_club(interest, candidates)
    return ClubSuggestion(source="heuristic", **answer)


@router.post("/api/clubs/search", response_model=SearchResults)
def search_clubs(payload: SearchRequest, db: Session = Depends(get_db)):
    query = payload.query.strip()
    hits = suggestions.search_clubs(
        query,
        active_candidates(db),
        categories=payload.categories,
        tags=payload.tags,
    )
    results = [
        SearchHit(club=club_out(db, db.get(Club, candidate.id)), relevance_score=score)
        for candidate, score in hits
    ]
    return SearchResults(clubs=results, total_results=len(results), query=query)


@router.post("/api/clubs/{club_id}/event-suggestions", response_model=list[EventIdea])
def event_suggestions(
    club_id: int,
    payload: EventSuggestionRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    club = get_club_or_404(db, club_id, active_only=True)
    ensure_event_manager(db, club, user)

    now = datetime.utcnow()
    recent_events = (
        db.execute(
            select(func.count(Event.id)).where(
                Event.club_id == club.id,
                Event.date >= now - timedelta(days=30),
            )
        ).scalar()
        or 0
    )
    goals = payload.custom_goals.strip() if payload.custom_goals else None
    ideas = suggestions.event_ideas(
        payload.event_type,
        club_candidate(db, club),
        recent_events=recent_events,
        custom_goals=goals or None,
    )

    if settings.ai_configured:
        for idea in ideas:
            try:
                idea["ai_reasoning"] = genai.event_reasoning(f"{idea['title']}: {idea['description']}")
            except genai.GenAIError as exc:
                logger.warning("AI event reasoning failed, keeping template text: %s", exc)
                break
    return [EventIdea(**idea) for idea in ideas]
