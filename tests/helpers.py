from __future__ import annotations

import html
import re
from typing import Any, Callable
from urllib.parse import parse_qs, urlparse

import httpx


GITLAB_HOST = "gitlab.example.test"

PROFILE = {
    "id": 1,
    "name": "A",
    "username": "a",
    "email": "a@x.com",
    "avatar_url": "u",
    "web_url": "w",
    "last_activity_on": "2020-01-01",
}


def make_events(count: int, start: int = 0) -> list[dict[str, Any]]:
    return [
        {"id": start + i, "action_name": "pushed to", "target_type": None, "created_at": "2020-01-01T00:00:00Z"}
        for i in range(count)
    ]


class FakeGitLab:
    """Stands in for the GitLab instance behind an httpx.MockTransport.

    Replies are stored as factories so every request gets a fresh response.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.token_reply: Callable[[], httpx.Response] = lambda: httpx.Response(200, json={"access_token": "T"})
        self.user_reply: Callable[[], httpx.Response] = lambda: httpx.Response(200, json=PROFILE)
        self.event_pages: dict[int, Callable[[], httpx.Response]] = {
            1: lambda: httpx.Response(200, json=make_events(50)),
        }

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def api_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.startswith("/api/")]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/oauth/token":
            return self.token_reply()
        if request.url.path == "/api/v4/user":
            return self.user_reply()
        if request.url.path == "/api/v4/events":
            page = int(request.url.params.get("page", "1"))
            reply = self.event_pages.get(page)
            return reply() if reply else httpx.Response(200, json=[])
        return httpx.Response(404, json={"message": "404 Not Found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def extract_login_url(page: str) -> str:
    match = re.search(r'class="login" href="([^"]+)"', page)
    assert match, "login link missing from page"
    return html.unescape(match.group(1))


def extract_state(page: str) -> str:
    query = parse_qs(urlparse(extract_login_url(page)).query)
    return query["state"][0]


