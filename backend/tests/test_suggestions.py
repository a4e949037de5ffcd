import json
from datetime import date

import httpx
import pytest
from sqlalchemy import update

from clubportal import genai, models, suggestions
from clubportal.config import settings
from conftest import TestingSessionLocal, auth_headers, get_club_id_by_name

CODING = suggestions.ClubCandidate(
    id=1,
    name="Coding Club",
    description="Weekly hack nights, programming contests and software project teams.",
    category="Technology",
    tags=["programming", "hackathon", "web"],
    member_count=2,
    upcoming_event_count=1,
)
PHOTO = suggestions.ClubCandidate(
    id=2,
    name="Photography Society",
    description="Photo walks, darkroom sessions and an end of term exhibition.",
    category="Arts",
    tags=["photography", "art", "exhibition"],
    member_count=1,
)
HOOPS = suggestions.ClubCandidate(
    id=3,
    name="Basketball Club",
    description="Pickup games, fitness drills and the intramural league.",
    category="Sports",
    tags=["basketball", "fitness"],
    member_count=1,
)
CLUBS = [CODING, PHOTO, HOOPS]


@pytest.fixture()
def ai_enabled(monkeypatch):
    monkeypatch.setattr(settings, "genai_api_key", "test-key")


# -- heuristic -------------------------------------------------------------


def test_score_club_weights():
    scored = suggestions.score_club("Programming", CODING)
    # description 8 + tag 7 + technology topic 5
    assert scored.score == 20
    assert scored.topics == ["technology"]

    assert suggestions.score_club("programming", HOOPS).score == 0


def test_topic_keywords_match_whole_words():
    assert ("technology", "data", "ai", "science") in suggestions.topics_for("I like AI")
    assert ("technology", "data", "ai", "science") not in suggestions.topics_for("weight training")


def test_match_band_is_clamped():
    assert suggestions.match_band(0) == 1
    assert suggestions.match_band(20) == 5
    assert suggestions.match_band(400) == 10


def test_suggest_club_picks_best_match():
    answer = suggestions.suggest_club("  PHOTOGRAPHY ", CLUBS)
    assert answer["club_id"] == PHOTO.id
    assert 1 <= answer["match_score"] <= 10
    assert "photography" in answer["reason"].lower()

    assert suggestions.suggest_club("cybersecurity", CLUBS)["club_name"] == "Coding Club"
    assert suggestions.suggest_club("gym and fitness", CLUBS)["club_name"] == "Basketball Club"
    assert suggestions.suggest_club("anything", []) is None


def test_search_relevance_ordering_and_filters():
    hits = suggestions.search_clubs("club", CLUBS)
    assert [(c.name, s) for c, s in hits] == [
        ("Coding Club", 10.4),
        ("Basketball Club", 10.1),
    ]

    assert suggestions.search_clubs("club", CLUBS, categories=["sports"])[0][0] is HOOPS
    assert suggestions.search_clubs("photo", CLUBS, tags=["Art"])[0][0] is PHOTO
    assert suggestions.search_clubs("photo", CLUBS, tags=["chess"]) == []

    exact = suggestions.relevance_score("coding club", CODING)
    assert exact == pytest.approx(10 + 5 + 0.2 + 0.2)


def test_event_ideas_from_templates():
    ideas = suggestions.event_ideas(
        "Competition", CODING, recent_events=1, custom_goals="Teamwork", today=date(2025, 1, 1)
    )
    assert len(ideas) == 2
    first, second = ideas
    assert first["title"] == "Coding Club Challenge Championship"
    assert "focusing on Teamwork" in first["description"]
    assert first["suggested_date"] == "2025-01-15"
    assert second["suggested_date"] == "2025-01-29"
    assert first["budget"] == {"min": 200, "max": 500}
    assert first["expected_participants"] == 1
    # base 70 + recent events 10 + goals 5
    assert first["match_score"] == 85
    assert "goal of teamwork" in first["ai_reasoning"]

    fallback = suggestions.event_ideas("Gala", CODING, today=date(2025, 1, 1))
    assert fallback[0]["title"] == "Technology Innovation Workshop"
    assert fallback[0]["match_score"] == 70


# -- endpoints -------------------------------------------------------------


def test_suggest_endpoint_uses_heuristic_without_ai(client):
    resp = client.post("/api/clubs/suggest", json={"interest": "programming"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["club_name"] == "Coding Club"
    assert body["club_id"] == get_club_id_by_name("Coding Club")
    assert body["match_score"] == 5
    assert body["source"] == "heuristic"


def test_suggest_endpoint_validation(client):
    assert client.post("/api/clubs/suggest", json={"interest": "   "}).status_code == 400

    with TestingSessionLocal() as session:
        session.execute(update(models.Club).values(is_active=False))
        session.commit()
    resp = client.post("/api/clubs/suggest", json={"interest": "music"})
    assert resp.status_code == 404


def test_suggest_endpoint_prefers_ai(client, monkeypatch, ai_enabled):
    photo_id = get_club_id_by_name("Photography Society")

    def fake_suggest(interest, clubs):
        assert {c["name"] for c in clubs} == {"Coding Club", "Photography Society", "Basketball Club"}
        return {"club_id": photo_id, "club_name": "Photography Society", "reason": "Cameras!", "match_score": 9}

    monkeypatch.setattr(genai, "suggest_club", fake_suggest)
    body = client.post("/api/clubs/suggest", json={"interest": "taking pictures"}).json()
    assert body == {
        "club_name": "Photography Society",
        "club_id": photo_id,
        "reason": "Cameras!",
        "match_score": 9,
        "source": "ai",
    }


def test_suggest_endpoint_falls_back_when_ai_fails(client, monkeypatch, ai_enabled):
    def broken(interest, clubs):
        raise genai.GenAIError("quota exceeded")

    monkeypatch.setattr(genai, "suggest_club", broken)
    body = client.post("/api/clubs/suggest", json={"interest": "basketball"}).json()
    assert body["club_name"] == "Basketball Club"
    assert body["source"] == "heuristic"


def test_search_endpoint(client):
    resp = client.post("/api/clubs/search", json={"query": "photo"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["total_results"] == 1
    assert body["query"] == "photo"
    assert body["clubs"][0]["club"]["name"] == "Photography Society"

    body = client.post("/api/clubs/search", json={"query": "club", "categories": ["Sports"]}).json()
    assert [hit["club"]["name"] for hit in body["clubs"]] == ["Basketball Club"]

    assert client.post("/api/clubs/search", json={"query": ""}).status_code == 400


def test_event_suggestions_endpoint(client):
    club_id = get_club_id_by_name("Coding Club")
    resp = client.post(
        f"/api/clubs/{club_id}/event-suggestions",
        json={"event_type": "Workshop"},
        headers=auth_headers("alice@school.edu"),
    )
    assert resp.status_code == 200
    ideas = resp.json()
    assert [i["title"] for i in ideas] == ["Technology Innovation Workshop", "Hands-on Technology Masterclass"]
    # seeded event in the last 30 days adds 10
    assert ideas[0]["match_score"] == 80

    resp = client.post(
        f"/api/clubs/{club_id}/event-suggestions",
        json={"event_type": "Workshop"},
        headers=auth_headers("carol@school.edu"),
    )
    assert resp.status_code == 403


def test_event_suggestions_use_ai_reasoning(client, monkeypatch, ai_enabled):
    monkeypatch.setattr(genai, "event_reasoning", lambda topic: "Because students love it.")
    club_id = get_club_id_by_name("Coding Club")
    ideas = client.post(
        f"/api/clubs/{club_id}/event-suggestions",
        json={"event_type": "Social Event"},
        headers=auth_headers("alice@school.edu"),
    ).json()
    assert {i["ai_reasoning"] for i in ideas} == {"Because students love it."}


# -- generative AI client --------------------------------------------------


def ai_reply(payload) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["key"] == "test-key"
        assert request.url.path.endswith(":generateContent")
        text = payload if isinstance(payload, str) else json.dumps(payload)
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})

    return httpx.MockTransport(handler)


def test_genai_suggest_club_validates_answer(ai_enabled):
    clubs = [c.as_dict() for c in CLUBS]
    answer = genai.suggest_club(
        "hoops",
        clubs,
        transport=ai_reply({"club_id": 3, "club_name": "wrong name", "reason": "Ball.", "match_score": 15}),
    )
    assert answer == {"club_id": 3, "club_name": "Basketball Club", "reason": "Ball.", "match_score": 10}

    with pytest.raises(genai.GenAIError):
        genai.suggest_club("hoops", clubs, transport=ai_reply({"club_id": 99, "match_score": 5}))
    with pytest.raises(genai.GenAIError):
        genai.suggest_club("hoops", clubs, transport=ai_reply("not json"))


def test_genai_http_failure_raises(ai_enabled):
    transport = httpx.MockTransport(lambda request: httpx.Response(429))
    with pytest.raises(genai.GenAIError):
        genai.generate_text("hello", transport=transport)


def test_genai_requires_real_key(monkeypatch):
    monkeypatch.setattr(settings, "genai_api_key", "your_google_ai_api_key_here")
    assert settings.ai_configured is False
    with pytest.raises(genai.GenAIError):
        genai.generate_text("hello")
