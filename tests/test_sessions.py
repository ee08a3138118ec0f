from __future__ import annotations

import time

from fastapi.testclient import TestClient
from itsdangerous import TimestampSigner

from gitlab_profile_ui.main import create_app
from gitlab_profile_ui.session_data import SessionData
from gitlab_profile_ui.sessions import SESSION_COOKIE_SALT, InMemorySessionStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_store_round_trip_and_expiry() -> None:
    clock = FakeClock()
    store = InMemorySessionStore(max_age=60, clock=clock)

    store.save("sid", SessionData(csrf="c", access_token="t"))
    assert store.load("sid") == SessionData(csrf="c", access_token="t")

    clock.now += 59
    assert "sid" in store

    clock.now += 1
    assert store.load("sid") is None
    assert len(store) == 0


def test_store_lifetime_is_not_extended_by_saves() -> None:
    clock = FakeClock()
    store = InMemorySessionStore(max_age=60, clock=clock)

    store.save("sid", SessionData(csrf="c"))
    clock.now += 30
    store.save("sid", SessionData(csrf="c", message="hello"))
    clock.now += 30

    assert store.load("sid") is None


def test_store_purge_expired() -> None:
    clock = FakeClock()
    store = InMemorySessionStore(max_age=60, clock=clock)
    store.save("old", SessionData(csrf="a"))
    clock.now += 45
    store.save("new", SessionData(csrf="b"))
    clock.now += 15

    assert store.purge_expired() == 1
    assert list(store) == ["new"]


def test_cookie_attributes(client, settings) -> None:
    response = client.get("/")

    cookie = response.headers["set-cookie"]
    assert cookie.startswith(f"{settings.SESSION_NAME}=")
    assert "HttpOnly" in cookie
    assert "samesite=lax" in cookie.lower()
    assert "Max-Age=86400" in cookie


def test_cookie_set_once_per_session(client) -> None:
    client.get("/")
    second = client.get("/")

    assert "set-cookie" not in second.headers
    assert len(client.app.state.session_store) == 1


def test_tampered_cookie_starts_new_session(client, settings) -> None:
    client.get("/")
    store = client.app.state.session_store
    (original_sid,) = list(store)

    client.cookies.clear()
    client.cookies.set(settings.SESSION_NAME, f"{original_sid}.forged.signature")
    response = client.get("/")

    assert "set-cookie" in response.headers
    assert len(store) == 2


def test_no_cookie_for_empty_session(settings, gitlab) -> None:
    with TestClient(create_app(settings, transport=gitlab.transport)) as client:
        response = client.get("/does-not-exist")

    assert response.status_code == 404
    assert "set-cookie" not in response.headers


class BackdatedSigner(TimestampSigner):
    def get_timestamp(self) -> int:
        return int(time.time()) - 2 * 86400


def test_expired_cookie_starts_new_session(client, settings) -> None:
    client.get("/")
    store = client.app.state.session_store
    (original_sid,) = list(store)
    stale = BackdatedSigner(settings.SESSION_SECRET, salt=SESSION_COOKIE_SALT).sign(original_sid).decode("utf-8")

    client.cookies.clear()
    client.cookies.set(settings.SESSION_NAME, stale)
    response = client.get("/")

    assert "set-cookie" in response.headers
    assert len(store) == 2
    assert original_sid in store
