import json

import httpx

from .config import settings

API_ROOT = "https://generativelanguage.googleapis.com/v1beta/models"
TIMEOUT_SECONDS = 20.0

CLUB_PROMPT = """You are an expert student advisor. A student has expressed an interest in "{interest}".

Match on the domain of the interest, not on surface words: security or programming interests belong
with technology clubs, dance or music with arts clubs, fitness with sports clubs. Never suggest a
completely unrelated club.

Available clubs:
{clubs}

Reply with JSON only: {{"club_id": <id>, "club_name": "<name>", "reason": "<one or two sentences>",
"match_score": <integer 1-10>}}. If nothing fits well, pick the closest club and give it a score of 1-3."""


class GenAIError(Exception):
    pass


def generate_text(prompt: str, json_mode: bool = False, transport: httpx.BaseTransport | None = None) -> str:
    if not settings.ai_configured:
        raise GenAIError("Generative AI is not configured")

    body = {"contents": [{"parts": [{"text": prompt}]}]}
    if json_mode:
        body["generationConfig"] = {"responseMimeType": "application/json"}
    url = f"{API_ROOT}/{settings.genai_model}:generateContent"
    try:
        with httpx.Client(timeout=TIMEOUT_SECONDS, transport=transport) as client:
            response = client.post(url, params={"key": settings.genai_api_key}, json=body)
            response.raise_for_status()
            payload = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise GenAIError(f"Generative AI request failed: {exc}") from exc

    try:
        return payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise GenAIError("Generative AI returned no text") from exc


def _describe_club(club: dict) -> str:
    tags = ", ".join(club.get("tags") or []) or "None"
    return (
        f"- ID: {club['id']}\n"
        f"  Name: {club['name']}\n"
        f"  Description: {club.get('description') or ''}\n"
        f"  Category: {club.get('category') or ''}\n"
        f"  Tags: {tags}\n"
        f"  Requirements: {club.get('requirements') or 'None'}\n"
        f"  Members: {club.get('member_count', 0)}"
    )


def suggest_club(interest: str, clubs: list[dict], transport: httpx.BaseTransport | None = None) -> dict:
    """Ask the model to pick one of ``clubs``; raises GenAIError on anything unusable."""

    prompt = CLUB_PROMPT.format(
        interest=interest,
        clubs="\n---\n".join(_describe_club(club) for club in clubs),
    )
    text = generate_text(prompt, json_mode=True, transport=transport)
    try:
        answer = json.loads(text)
        club_id = int(answer["club_id"])
        score = int(answer.get("match_score", 1))
        reason = str(answer.get("reason", "")).strip()
    except (ValueError, KeyError, TypeError) as exc:
        raise GenAIError("Generative AI answer was not valid JSON") from exc

    by_id = {club["id"]: club for club in clubs}
    if club_id not in by_id:
        raise GenAIError(f"Generative AI picked unknown club {club_id}")
    return {
        "club_id": club_id,
        "club_name": by_id[club_id]["name"],
        "reason": reason or f"Recommended for your interest in \"{interest}\".",
        "match_score": min(max(score, 1), 10),
    }


def event_reasoning(topic: str, transport: httpx.BaseTransport | None = None) -> str:
    prompt = (
        "In two or three sentences, explain why this event idea would work well for a student club "
        f"and how to make it a success: {topic}"
    )
    return generate_text(prompt, transport=transport).strip()
