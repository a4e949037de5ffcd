import re
from dataclasses import dataclass, field
from datetime import date, timedelta

NAME_POINTS = 10
DESCRIPTION_POINTS = 8
CATEGORY_POINTS = 6
TAG_POINTS = 7
TOPIC_POINTS = 5
KEYWORD_POINTS = 3
SCORE_PER_BAND = 4

STOP_WORDS = {"the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by", "like", "love", "into"}

# keyword group in the interest -> category words that make a club relevant
TOPIC_GROUPS = (
    (("code", "coding", "program", "software", "tech", "developer", "web dev", "app"), ("technology", "programming", "computer", "software")),
    (("cyber", "security", "hacking"), ("technology", "security", "cyber")),
    (("ai", "ml", "machine learning", "data"), ("technology", "data", "ai", "science")),
    (("robot", "electronic", "engineering", "ieee"), ("engineering", "technology", "robotics")),
    (("business", "entrepreneur", "startup", "finance", "marketing"), ("business", "entrepreneurship", "finance")),
    (("photo", "art", "paint", "draw", "design", "creative"), ("arts", "photography", "design")),
    (("music", "sing", "band", "dance", "theater", "theatre", "drama"), ("arts", "music", "dance", "performance", "cultural")),
    (("sport", "fitness", "basketball", "football", "cricket", "badminton", "run", "gym"), ("sports", "athletics", "fitness")),
    (("research", "academic", "study", "science", "math"), ("academic", "research", "science")),
    (("volunteer", "community", "social service", "charity"), ("community", "social service", "volunteer")),
    (("game", "gaming", "esports"), ("gaming", "esports", "entertainment")),
    (("debate", "speaking", "leadership"), ("academic", "debate", "leadership", "professional")),
    (("environment", "sustainab", "green", "climate", "nature"), ("environment", "sustainability")),
    (("culture", "cultural", "heritage", "language"), ("cultural", "culture", "community")),
)


@dataclass
class ClubCandidate:
    id: int
    name: str
    description: str = ""
    category: str = ""
    tags: list[str] = field(default_factory=list)
    requirements: str = ""
    meeting_schedule: str = ""
    member_count: int = 0
    upcoming_event_count: int = 0

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "tags": list(self.tags),
            "requirements": self.requirements,
            "member_count": self.member_count,
        }


@dataclass
class ScoredClub:
    club: ClubCandidate
    score: int
    topics: list[str]


def _keyword_pattern(keyword: str) -> re.Pattern:
    # short keywords must be whole words ("ai" must not match "training")
    if len(keyword) <= 3:
        return re.compile(rf"\b{re.escape(keyword)}\b")
    return re.compile(rf"\b{re.escape(keyword)}")


_TOPIC_PATTERNS = [
    ([_keyword_pattern(k) for k in keywords], categories) for keywords, categories in TOPIC_GROUPS
]


def extract_keywords(interest: str) -> list[str]:
    words = re.split(r"[\s,]+", interest.lower())
    return [w for w in words if len(w) > 2 and w not in STOP_WORDS]


def topics_for(interest: str) -> list[tuple[str, ...]]:
    interest = interest.lower()
    return [
        categories
        for patterns, categories in _TOPIC_PATTERNS
        if any(pattern.search(interest) for pattern in patterns)
    ]


def score_club(interest: str, club: ClubCandidate) -> ScoredClub:
    interest = interest.strip().lower()
    name = club.name.lower()
    description = (club.description or "").lower()
    category = (club.category or "").lower()
    tags = [t.lower() for t in club.tags or []]

    score = 0
    if interest in name:
        score += NAME_POINTS
    if interest in description:
        score += DESCRIPTION_POINTS
    if category and interest in category:
        score += CATEGORY_POINTS
    if any(tag in interest or interest in tag for tag in tags):
        score += TAG_POINTS

    matched_topics = []
    for categories in topics_for(interest):
        hit = next((c for c in categories if c in category), None)
        if hit:
            score += TOPIC_POINTS
            matched_topics.append(hit)

    text = " ".join([name, description, " ".join(tags)])
    keywords = extract_keywords(interest)
    if len(keywords) > 1:
        score += KEYWORD_POINTS * sum(1 for keyword in keywords if keyword in text)

    return ScoredClub(club=club, score=score, topics=matched_topics)


def rank_clubs(interest: str, clubs: list[ClubCandidate]) -> list[ScoredClub]:
    scored = [score_club(interest, club) for club in clubs]
    scored.sort(key=lambda s: (-s.score, -s.club.member_count, s.club.name.lower()))
    return scored


def match_band(score: int) -> int:
    """Rescale a raw score to the 1-10 band shown to users."""

    return min(max(round(score / SCORE_PER_BAND), 1), 10)


def suggestion_reason(interest: str, best: ScoredClub) -> str:
    if best.score == 0:
        reason = f'No club closely matches "{interest}" yet, but {best.club.name} is a good place to start. '
    else:
        reason = f'Great match for "{interest}"! '
    if best.topics:
        reason += f"This club aligns with your interest in {' and '.join(best.topics[:2])}. "
    if best.club.description:
        snippet = best.club.description[:120]
        reason += snippet + ("..." if len(best.club.description) > 120 else "")
    return reason.strip()


def suggest_club(interest: str, clubs: list[ClubCandidate]) -> dict | None:
    if not clubs:
        return None
    interest = interest.strip()
    best = rank_clubs(interest, clubs)[0]
    return {
        "club_id": best.club.id,
        "club_name": best.club.name,
        "reason": suggestion_reason(interest, best),
        "match_score": match_band(best.score),
    }


# -- search ----------------------------------------------------------------


def matches_query(query: str, club: ClubCandidate) -> bool:
    query = query.lower()
    fields = [club.name, club.description, club.requirements, club.meeting_schedule, club.category]
    if any(query in (value or "").lower() for value in fields):
        return True
    return any(query in tag.lower() for tag in club.tags or [])


def relevance_score(query: str, club: ClubCandidate) -> float:
    query = query.lower()
    name = club.name.lower()
    score = 0.0
    if query in name:
        score += 10
        if name == query:
            score += 5
    if query in (club.description or "").lower():
        score += 5
    if any(query in tag.lower() for tag in club.tags or []):
        score += 3
    if query in (club.category or "").lower():
        score += 3
    if query in (club.requirements or "").lower():
        score += 2
    score += min(club.member_count * 0.1, 2)
    score += min(club.upcoming_event_count * 0.2, 1)
    return round(score, 2)


def search_clubs(
    query: str,
    clubs: list[ClubCandidate],
    categories: list[str] | None = None,
    tags: list[str] | None = None,
    limit: int = 20,
) -> list[tuple[ClubCandidate, float]]:
    wanted_categories = {c.lower() for c in categories or []}
    wanted_tags = {t.lower() for t in tags or []}
    hits = []
    for club in clubs:
        if not matches_query(query, club):
            continue
        if wanted_categories and (club.category or "").lower() not in wanted_categories:
            continue
        if wanted_tags and not wanted_tags & {t.lower() for t in club.tags or []}:
            continue
        hits.append((club, relevance_score(query, club)))
    hits.sort(key=lambda hit: (-hit[1], hit[0].name.lower()))
    return hits[:limit]


# -- event ideas -----------------------------------------------------------

EVENT_TEMPLATES = {
    "Workshop": {
        "duration": "2-3 hours",
        "venue": "Club meeting room or classroom",
        "max_participants": 30,
        "difficulty": "Intermediate",
        "tags": ["hands-on", "learning", "interactive"],
        "materials": ["Laptops/tablets", "Presentation materials", "Handouts"],
        "budget": {"min": 50, "max": 200},
        "success_tips": [
            "Prepare interactive exercises to keep participants engaged",
            "Provide take-home resources for continued learning",
            "Include time for Q&A and networking",
        ],
        "related_skills": ["Problem-solving", "Communication", "Technical skills"],
        "titles": ["{category} Innovation Workshop", "Hands-on {category} Masterclass"],
        "descriptions": [
            "Join us for an interactive {category_lower} workshop{goals}. Perfect for both beginners and experienced members looking to expand their skills.",
            "Dive deep into {category_lower} concepts through hands-on activities{goals}. This workshop will challenge your thinking and expand your horizons.",
        ],
    },
    "Competition": {
        "duration": "4-6 hours",
        "venue": "Large auditorium or event hall",
        "max_participants": 100,
        "difficulty": "Advanced",
        "tags": ["competitive", "showcase", "prizes"],
        "materials": ["Judging materials", "Prizes", "Registration system"],
        "budget": {"min": 200, "max": 500},
        "success_tips": [
            "Set clear rules and judging criteria",
            "Promote well in advance to build excitement",
            "Secure meaningful prizes or recognition",
        ],
        "related_skills": ["Strategic thinking", "Performance under pressure", "Teamwork"],
        "titles": ["{club} Challenge Championship", "{category} Innovation Contest"],
        "descriptions": [
            "Test your {category_lower} skills in our exciting competition{goals}. Compete individually or in teams for prizes and recognition.",
            "Showcase your talent in this {category_lower} challenge{goals}. Open to all skill levels with multiple competition categories.",
        ],
    },
    "Social Event": {
        "duration": "2-4 hours",
        "venue": "Student lounge or outdoor space",
        "max_participants": 50,
        "difficulty": "Beginner",
        "tags": ["networking", "fun", "community"],
        "materials": ["Refreshments", "Games/activities", "Music system"],
        "budget": {"min": 100, "max": 300},
        "success_tips": [
            "Plan icebreaker activities for new members",
            "Create a welcoming atmosphere for all skill levels",
            "Include opportunities for members to connect",
        ],
        "related_skills": ["Social skills", "Leadership", "Event planning"],
        "titles": ["{club} Community Mixer", "{category} Enthusiasts Meetup"],
        "descriptions": [
            "Connect with fellow {category_lower} enthusiasts in a relaxed, fun environment{goals}. Great for networking and making new friends.",
            "Celebrate our community with games, activities, and great conversation{goals}. Everyone is welcome to join.",
        ],
    },
}


def event_reasoning(event_type: str, club: ClubCandidate, recent_events: int, custom_goals: str | None) -> str:
    reasoning = f"Based on {club.name}'s {club.category.lower()} focus and {club.member_count} active members, "
    if recent_events:
        reasoning += f"this {event_type.lower()} builds on your recent activity momentum. "
    else:
        reasoning += f"this {event_type.lower()} is perfect to kickstart club engagement. "
    if custom_goals:
        reasoning += f"The format aligns well with your goal of {custom_goals.lower()}. "
    return reasoning + "This event type typically sees high participation and creates lasting value for members."


def event_match_score(club: ClubCandidate, recent_events: int, custom_goals: str | None) -> int:
    score = 70
    if recent_events:
        score += 10
    if club.member_count > 20:
        score += 10
    if custom_goals:
        score += 5
    if len(club.tags or []) > 3:
        score += 5
    return min(score, 100)


def event_ideas(
    event_type: str,
    club: ClubCandidate,
    recent_events: int = 0,
    custom_goals: str | None = None,
    today: date | None = None,
) -> list[dict]:
    if event_type not in EVENT_TEMPLATES:
        event_type = "Workshop"
    template = EVENT_TEMPLATES[event_type]
    today = today or date.today()
    goals = f" focusing on {custom_goals}" if custom_goals else ""
    values = {
        "club": club.name,
        "category": club.category,
        "category_lower": club.category.lower(),
        "goals": goals,
    }

    ideas = []
    for variation in range(2):
        ideas.append(
            {
                "id": f"suggestion-{club.id}-{event_type.lower().replace(' ', '-')}-{variation + 1}",
                "title": template["titles"][variation].format(**values),
                "description": template["descriptions"][variation].format(**values),
                "suggested_date": (today + timedelta(days=14 * (variation + 1))).isoformat(),
                "estimated_duration": template["duration"],
                "venue": template["venue"],
                "expected_participants": min(int(club.member_count * 0.7), template["max_participants"]),
                "difficulty": template["difficulty"],
                "category": club.category,
                "tags": template["tags"] + list(club.tags or [])[:2],
                "materials": list(template["materials"]),
                "budget": dict(template["budget"]),
                "success_tips": list(template["success_tips"]),
                "related_skills": list(template["related_skills"]),
                "ai_reasoning": event_reasoning(event_type, club, recent_events, custom_goals),
                "match_score": event_match_score(club, recent_events, custom_goals),
            }
        )
    return ideas
