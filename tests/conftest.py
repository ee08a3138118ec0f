from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from gitlab_profile_ui.config import Settings
from gitlab_profile_ui.main import create_app
from tests.helpers import GITLAB_HOST, FakeGitLab


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        APP_ID="app-id",
        APP_SECRET="app-secret",
        REDIRECT="http://testserver/callback",
        SCOPE="read_api",
        GITLAB_BASE_URL=f"https://{GITLAB_HOST}",
        SESSION_NAME="test_session",
        SESSION_SECRET="test-secret",
    )


@pytest.fixture()
def gitlab() -> FakeGitLab:
    return FakeGitLab()


@pytest.fixture()
def client(settings: Settings, gitlab: FakeGitLab):
    with TestClient(create_app(settings, transport=gitlab.transport)) as c:
        yield c
