import logging
from datetime import datetime, timedelta

from sqlalchemy import select

from clubportal import models, notifications
from clubportal.api import addresses as address_routes
from clubportal.auth_utils import hash_token
from conftest import TestingSessionLocal, auth_headers

ALICE = "alice@school.edu"
BOB = "bob@school.edu"


def register(client, username="newbie", email="newbie@school.edu", password="password123"):
    return client.post("/api/user", json={"username": username, "email": email, "password": password})


def issued_token(monkeypatch) -> list[str]:
    tokens = []
    monkeypatch.setattr(
        "clubportal.api.users.send_verification_email",
        lambda email, token: tokens.append(token),
    )
    return tokens


def test_register_creates_pending_user_and_logs_mail(client, caplog):
    with caplog.at_level(logging.INFO, logger="clubportal.notifications"):
        resp = register(client, email="NewBie@School.edu")
    assert resp.status_code == 201
    body = resp.json()
    assert body["user"] == {"email": "newbie@school.edu", "name": "newbie"}
    assert body["requires_verification"] is True

    with TestingSessionLocal() as session:
        pending = session.execute(select(models.PendingUser)).scalar_one()
        assert pending.email == "newbie@school.edu"
        assert pending.expires_at > datetime.utcnow() + timedelta(hours=23)
        assert session.execute(select(models.User).where(models.User.name == "newbie")).first() is None

    assert any("[EMAIL] to=newbie@school.edu" in r.getMessage() for r in caplog.records)
    assert any("/verify-email?token=" in r.getMessage() for r in caplog.records)


def test_register_validation(client):
    assert register(client, password="short").status_code == 400
    assert register(client, email="not-an-email").status_code == 400
    assert register(client, username="   ").status_code == 400


def test_register_conflicts(client):
    assert register(client, email=ALICE).status_code == 409
    assert register(client, username="Alice Chen").status_code == 409

    assert register(client).status_code == 201
    # the username is held by a pending registration for another email
    assert register(client, email="other@school.edu").status_code == 409
    # re-registering the same email replaces the pending row
    assert register(client).status_code == 201
    with TestingSessionLocal() as session:
        assert len(session.execute(select(models.PendingUser)).all()) == 1


def test_register_mail_failure_discards_pending(client, monkeypatch):
    def broken(email, token):
        raise RuntimeError("smtp down")

    monkeypatch.setattr("clubportal.api.users.send_verification_email", broken)
    resp = register(client)
    assert resp.status_code == 500
    assert "verification email" in resp.json()["error"]
    with TestingSessionLocal() as session:
        assert session.execute(select(models.PendingUser)).first() is None


def test_verify_and_login(client, monkeypatch):
    tokens = issued_token(monkeypatch)
    register(client)

    resp = client.post("/api/user/verify", json={"email": "newbie@school.edu", "token": "wrong"})
    assert resp.status_code == 400

    resp = client.post("/api/user/verify", json={"email": "newbie@school.edu", "token": tokens[0]})
    assert resp.status_code == 201
    assert resp.json()["name"] == "newbie"
    assert resp.json()["points"] == 0

    with TestingSessionLocal() as session:
        assert session.execute(select(models.PendingUser)).first() is None

    resp = client.post("/api/auth/login", json={"email_or_name": "NEWBIE@school.edu", "password": "password123"})
    assert resp.status_code == 200
    assert resp.json()["email"] == "newbie@school.edu"

    resp = client.post("/api/auth/login", json={"email_or_name": "newbie", "password": "password123"})
    assert resp.status_code == 200

    resp = client.post("/api/auth/login", json={"email_or_name": "newbie", "password": "nope"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid credentials"}


def test_verify_rejects_expired_token(client, monkeypatch):
    tokens = issued_token(monkeypatch)
    register(client)
    with TestingSessionLocal() as session:
        pending = session.execute(select(models.PendingUser)).scalar_one()
        assert pending.token_hash == hash_token(tokens[0])
        pending.expires_at = datetime.utcnow() - timedelta(minutes=1)
        session.commit()

    resp = client.post("/api/user/verify", json={"email": "newbie@school.edu", "token": tokens[0]})
    assert resp.status_code == 400


def test_verification_url_uses_base_url():
    url = notifications.verification_url("a+b@school.edu", "tok")
    assert url.endswith("/verify-email?token=tok&email=a%2Bb%40school.edu")


def test_profile_read_and_update(client):
    resp = client.get("/api/user/profile", headers=auth_headers(ALICE))
    assert resp.status_code == 200
    profile = resp.json()
    assert profile["user"]["email"] == ALICE
    assert [c["name"] for c in profile["owned_clubs"]] == ["Coding Club"]
    assert profile["memberships"][0]["role"] == "admin"
    assert profile["addresses"] == []

    resp = client.put(
        "/api/user/profile",
        json={"bio": "Loves compilers", "year": "4"},
        headers=auth_headers(ALICE),
    )
    assert resp.status_code == 200
    assert resp.json()["bio"] == "Loves compilers"
    assert resp.json()["name"] == "Alice Chen"

    resp = client.put("/api/user/profile", json={"name": "Bob Rivera"}, headers=auth_headers(ALICE))
    assert resp.status_code == 409


def add_address(client, email, **fields):
    payload = {"street": "1 College Ave", "city": "Springfield"}
    payload.update(fields)
    return client.post("/api/user/addresses", json=payload, headers=auth_headers(email))


def test_new_default_address_unsets_others(client):
    first = add_address(client, ALICE, label="Home", is_default=True).json()
    assert first["is_default"] is True
    assert first["country"] == "US"

    second = add_address(client, ALICE, label="Dorm", street="5 Hall Rd", is_default=True)
    assert second.status_code == 201

    addresses = client.get("/api/user/addresses", headers=auth_headers(ALICE)).json()
    defaults = [a for a in addresses if a["is_default"]]
    assert [a["label"] for a in defaults] == ["Dorm"]
    assert addresses[0]["label"] == "Dorm"

    resp = client.put(
        "/api/user/addresses",
        json={"id": first["id"], "is_default": True},
        headers=auth_headers(ALICE),
    )
    assert resp.status_code == 200
    addresses = client.get("/api/user/addresses", headers=auth_headers(ALICE)).json()
    assert [a["label"] for a in addresses if a["is_default"]] == ["Home"]


def test_second_default_address_is_rejected_by_database(client, monkeypatch):
    add_address(client, ALICE, label="Home", is_default=True)
    # skip the bulk reset so only the partial unique index stands in the way
    monkeypatch.setattr(address_routes, "_clear_default", lambda db, user: None)

    resp = add_address(client, ALICE, label="Dorm", is_default=True)
    assert resp.status_code == 409
    assert resp.json() == {"error": "Another default address was set at the same time"}

    addresses = client.get("/api/user/addresses", headers=auth_headers(ALICE)).json()
    assert [(a["label"], a["is_default"]) for a in addresses] == [("Home", True)]


def test_addresses_are_scoped_to_owner(client):
    address = add_address(client, ALICE).json()

    assert client.get("/api/user/addresses", headers=auth_headers(BOB)).json() == []
    resp = client.put(
        "/api/user/addresses", json={"id": address["id"], "city": "Shelbyville"}, headers=auth_headers(BOB)
    )
    assert resp.status_code == 404
    resp = client.delete("/api/user/addresses", params={"id": address["id"]}, headers=auth_headers(BOB))
    assert resp.status_code == 404

    assert client.delete("/api/user/addresses", headers=auth_headers(ALICE)).status_code == 400
    resp = client.delete("/api/user/addresses", params={"id": address["id"]}, headers=auth_headers(ALICE))
    assert resp.status_code == 200
    assert client.get("/api/user/addresses", headers=auth_headers(ALICE)).json() == []


def test_address_requires_street_and_city(client):
    assert add_address(client, ALICE, city=" ").status_code == 400
    address = add_address(client, ALICE).json()
    resp = client.put(
        "/api/user/addresses", json={"id": address["id"], "street": ""}, headers=auth_headers(ALICE)
    )
    assert resp.status_code == 400
