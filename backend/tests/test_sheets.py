import httpx
import pytest

from clubportal import sheets
from conftest import get_club_id_by_name

EVENTS_CSV = """\ufeffEvent ID, Event Name ,Event Description,Event Date and Time,Venue,Total Allowed Participants,Event Type,Event Organiser,Cover Image,Event Registration/Info Link,Publish Status
,Robotics Demo,Watch the bots,23/08/2025 10:00,Lab 3,50 people,Demo,coding club,,https://example.com/rsvp,Published
evt-7,Draft Idea,Not ready,24/08/2025,Lab 4,,,Coding Club,,,draft
evt-8,,No title,24/08/2025,Lab 4,,,Coding Club,,,yes
,,,,,,,,,,
evt-9,Open Mic,Bring a song,2025-09-01 18:30,Quad,0,,Music Guild,,,YES
"""

ANNOUNCEMENTS_CSV = """Announcement ID,Title,Content,Club,Priority,Author,Created Date,Tags,Publish Status
a-1,Sheet news,From the sheet,Coding Club,High,Sheet Bot,01/01/2030 09:00,"news, sheet",publish
a-2,Photo walk,Bring cameras,Photography Society,whenever,,02/01/2030,,published
a-3,Hidden,Not yet,Coding Club,low,,03/01/2030,,no
"""


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("23/08/2025 10:00", "2025-08-23T10:00:00"),
        ("05/09/2025", "2025-09-05T12:00:00"),
        ("23/08/2025 6:30 PM", "2025-08-23T18:30:00"),
        ("31/02/2025", "31/02/2025"),
        ("2025-08-23 9:30", "2025-08-23T09:30:00"),
        ("2025-08-23T10:00:00Z", "2025-08-23T10:00:00"),
        ("August 23, 2025", "2025-08-23T00:00:00"),
        ("next friday", "next friday"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_sheet_date(raw, expected):
    assert sheets.normalize_sheet_date(raw) == expected


def test_slash_dates_are_day_first():
    # 03/04 is the 3rd of April, never March 4th
    assert sheets.normalize_sheet_date("03/04/2025 08:15") == "2025-04-03T08:15:00"


def test_parse_events_keeps_published_rows_and_resolves_clubs():
    events = sheets.parse_events(EVENTS_CSV, {"coding club": 7})
    assert [e.title for e in events] == ["Robotics Demo", "Open Mic"]

    demo, mic = events
    assert demo.id == "event-1"
    assert demo.date == "2025-08-23T10:00:00"
    assert demo.max_participants == 50
    assert demo.club_id == 7
    assert demo.club_slug == "coding-club"
    assert demo.registration_link == "https://example.com/rsvp"

    assert mic.id == "evt-9"
    assert mic.club_id is None
    assert mic.max_participants is None
    assert mic.category == "General"


def test_parse_announcements_normalizes_fields():
    announcements = sheets.parse_announcements(ANNOUNCEMENTS_CSV, {"coding club": 1})
    assert [a.id for a in announcements] == ["a-1", "a-2"]

    news, walk = announcements
    assert news.priority == "high"
    assert news.tags == ["news", "sheet"]
    assert news.club_id == 1
    assert news.created_at == "2030-01-01T09:00:00"

    assert walk.priority == "normal"
    assert walk.author == "Admin"
    assert walk.club_id is None


def test_fetch_csv_sends_no_cache_and_follows_redirects():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/pub":
            return httpx.Response(307, headers={"Location": "https://sheets.example/export.csv"})
        seen["cache"] = request.headers.get("cache-control")
        return httpx.Response(200, text="Title\nHello\n")

    text = sheets.fetch_csv("https://sheets.example/pub", transport=httpx.MockTransport(handler))
    assert text == "Title\nHello\n"
    assert seen["cache"] == "no-cache, no-store, must-revalidate"


@pytest.mark.parametrize("status", [400, 403, 404, 500])
def test_fetch_csv_http_errors_are_unavailable(status):
    transport = httpx.MockTransport(lambda request: httpx.Response(status))
    with pytest.raises(sheets.SheetUnavailable):
        sheets.fetch_csv("https://sheets.example/export.csv", transport=transport)


def test_fetch_csv_without_url_is_unavailable():
    with pytest.raises(sheets.SheetUnavailable):
        sheets.fetch_csv("")


def test_unreachable_events_sheet_serves_demo_data(client):
    resp = client.get("/api/events/csv")
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Using demo data - Google Sheets not accessible"
    assert len(body["events"]) == 3
    assert resp.headers["cache-control"] == "no-cache, no-store, must-revalidate"


def test_events_sheet_endpoint(client, monkeypatch):
    monkeypatch.setattr(sheets, "fetch_csv", lambda url: EVENTS_CSV.replace("coding club", "Coding Club"))
    resp = client.get("/api/events/csv")
    assert resp.status_code == 200
    body = resp.json()
    assert "message" not in body
    assert body["events"][0]["club_id"] == get_club_id_by_name("Coding Club")

    resp = client.get("/api/events/csv/evt-9")
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert resp.json()["event"]["title"] == "Open Mic"

    assert client.get("/api/events/csv/evt-7").status_code == 404


def test_single_sheet_event_upstream_failure(client):
    resp = client.get("/api/events/csv/evt-1")
    assert resp.status_code == 502
    assert "error" in resp.json()


def test_announcements_sheet_endpoint(client, monkeypatch):
    resp = client.get("/api/announcements/csv")
    assert resp.status_code == 200
    assert resp.json()["message"] == sheets.DEMO_MESSAGE
    assert resp.json()["total"] == len(sheets.DEMO_ANNOUNCEMENTS)

    monkeypatch.setattr(sheets, "fetch_csv", lambda url: ANNOUNCEMENTS_CSV)
    body = client.get("/api/announcements/csv").json()
    assert body["success"] is True
    assert body["total"] == 2
    assert "message" not in body


def test_club_feed_merges_sheet_rows_by_club(client, monkeypatch):
    monkeypatch.setattr(sheets, "fetch_csv", lambda url: ANNOUNCEMENTS_CSV)
    club_id = get_club_id_by_name("Coding Club")
    feed = client.get(f"/api/clubs/{club_id}/announcements").json()
    assert [(item["source"], item["title"]) for item in feed] == [
        ("sheet", "Sheet news"),
        ("database", "Kickoff week"),
    ]
    assert feed[0]["author"] == "Sheet Bot"


def test_oversized_cell_falls_back_to_demo_data(client, monkeypatch):
    huge = 'Title,Content,Publish Status\n"' + "x" * 200_000 + '",body,yes\n'
    monkeypatch.setattr(sheets, "fetch_csv", lambda url: huge)

    resp = client.get("/api/events/csv")
    assert resp.status_code == 200
    assert resp.json()["message"] == sheets.DEMO_MESSAGE

    resp = client.get("/api/announcements/csv")
    assert resp.status_code == 200
    assert resp.json()["message"] == sheets.DEMO_MESSAGE

    club_id = get_club_id_by_name("Coding Club")
    feed = client.get(f"/api/clubs/{club_id}/announcements").json()
    assert [item["source"] for item in feed] == ["database"]


def test_club_feed_puts_unparsed_dates_last(client, monkeypatch):
    csv_text = (
        "Announcement ID,Title,Content,Club,Created Date,Publish Status\n"
        "a-1,Old raw,Who knows,Coding Club,sometime last year,yes\n"
    )
    monkeypatch.setattr(sheets, "fetch_csv", lambda url: csv_text)
    club_id = get_club_id_by_name("Coding Club")
    feed = client.get(f"/api/clubs/{club_id}/announcements").json()
    assert [item["title"] for item in feed] == ["Kickoff week", "Old raw"]
    assert feed[1]["created_at"] == "sometime last year"
