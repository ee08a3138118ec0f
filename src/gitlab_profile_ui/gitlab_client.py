# src/gitlab_profile_ui/gitlab_client.py

import logging
import typing
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ConfigDict, Field

from .config import Settings
from .exceptions import GitLabAPIError

logger = logging.getLogger(__name__)

EVENTS_PER_PAGE = 100
MAX_EVENT_PAGES = 2
MAX_EVENTS = 101


class UserProfile(BaseModel):
    """The subset of GitLab's /user payload shown on the profile page."""
    model_config = ConfigDict(populate_by_name=True)

    id: typing.Optional[int] = None
    name: typing.Optional[str] = None
    username: typing.Optional[str] = None
    email: typing.Optional[str] = None
    avatar: typing.Optional[str] = Field(default=None, alias="avatar_url")
    profileUrl: typing.Optional[str] = Field(default=None, alias="web_url")
    last_activity: typing.Optional[str] = Field(default=None, alias="last_activity_on")


class GitLabClient:
    """
    Talks to the single GitLab instance configured in Settings.
    All calls go through the shared httpx.AsyncClient owned by the app.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self.settings = settings
        self.http = http_client
        self.base_url = settings.gitlab_url

    # --- Authorization Code Flow ---

    def authorize_url(self, state: str) -> str:
        params = {
            "client_id": self.settings.APP_ID,
            "redirect_uri": self.settings.redirect_uri,
            "response_type": "code",
            "state": state,
            "scope": self.settings.SCOPE,
        }
        return f"{self.base_url}/oauth/authorize?{urlencode(params)}"

    async def exchange_code(self, code: str) -> typing.Optional[str]:
        """
        Trades the authorization code for an access token.
        Returns None when GitLab answers without an ``access_token``.
        """
        params = {
            "client_id": self.settings.APP_ID,
            "client_secret": self.settings.APP_SECRET,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.settings.redirect_uri,
        }
        body = await self._request_json("POST", "/oauth/token", params)
        if not isinstance(body, dict):
            raise GitLabAPIError("Token endpoint returned an unexpected payload.")
        access_token = body.get("access_token")
        if access_token:
            logger.info("Access token acquired from GitLab.")
        else:
            logger.warning(
                "Token endpoint answered without an access token: %s",
                body.get("error_description") or body.get("error") or "no details",
            )
        return access_token

    # --- Protected API ---

    async def get_user(self, access_token: str) -> UserProfile:
        body = await self._request_json("GET", "/api/v4/user", {"access_token": access_token})
        if not isinstance(body, dict):
            raise GitLabAPIError("User endpoint returned an unexpected payload.")
        return UserProfile.model_validate(body)

    async def get_events(self, access_token: str) -> typing.List[dict]:
        """
        Collects the user's events, one page after the other, stopping at
        MAX_EVENT_PAGES or as soon as ``x-next-page`` does not announce the
        next page. The result is capped at MAX_EVENTS entries.
        """
        activities: typing.List[dict] = []
        for page in range(1, MAX_EVENT_PAGES + 1):
            params = {"per_page": EVENTS_PER_PAGE, "page": page, "access_token": access_token}
            response = await self._send("GET", "/api/v4/events", params)
            events = self._parse_json(response)
            if not isinstance(events, list):
                raise GitLabAPIError("Events endpoint returned an unexpected payload.")
            activities.extend(events)

            next_page = response.headers.get("x-next-page", "").strip()
            if next_page != str(page + 1):
                break

        logger.info("Fetched %d GitLab events.", len(activities))
        return activities[:MAX_EVENTS]

    # --- Transport helpers ---

    async def _send(self, method: str, path: str, params: dict) -> httpx.Response:
        try:
            response = await self.http.request(
                method,
                f"{self.base_url}{path}",
                params=params,
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("GitLab %s %s failed with status %s.", method, path, e.response.status_code)
            raise GitLabAPIError(f"GitLab {method} {path} failed", e.response.status_code) from e
        except httpx.RequestError as e:
            # str(e) can carry the request URL, which includes the token.
            logger.error("Could not reach GitLab for %s %s: %s.", method, path, type(e).__name__)
            raise GitLabAPIError(f"Could not connect to GitLab for {method} {path}") from e
        return response

    @staticmethod
    def _parse_json(response: httpx.Response) -> typing.Any:
        try:
            return response.json()
        except ValueError as e:
            raise GitLabAPIError("GitLab returned malformed JSON.", response.status_code) from e

    async def _request_json(self, method: str, path: str, params: dict) -> typing.Any:
        response = await self._send(method, path, params)
        return self._parse_json(response)
