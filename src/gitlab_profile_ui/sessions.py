# src/gitlab_profile_ui/sessions.py

import logging
import secrets
import time
import typing

from fastapi import Request
from itsdangerous import BadSignature, SignatureExpired, TimestampSigner
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response as StarletteResponse

from .session_data import SessionData

logger = logging.getLogger(__name__)

SESSION_COOKIE_SALT = "gitlab-profile-session"


class InMemorySessionStore:
    """
    Session values keyed by session id, each with a fixed lifetime counted
    from creation. Entries are never extended by activity.
    """

    def __init__(self, max_age: int, clock: typing.Callable[[], float] = time.monotonic):
        self.max_age = max_age
        self._clock = clock
        self._data: typing.Dict[str, typing.Tuple[float, dict]] = {}

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, session_id: str) -> bool:
        return self.load(session_id) is not None

    def __iter__(self) -> typing.Iterator[str]:
        return iter(list(self._data))

    @staticmethod
    def new_session_id() -> str:
        return secrets.token_urlsafe(32)

    def load(self, session_id: str) -> typing.Optional[SessionData]:
        entry = self._data.get(session_id)
        if entry is None:
            return None
        created_at, payload = entry
        if self._clock() - created_at >= self.max_age:
            del self._data[session_id]
            return None
        return SessionData.model_validate(payload)

    def save(self, session_id: str, session: SessionData) -> None:
        entry = self._data.get(session_id)
        created_at = entry[0] if entry else self._clock()
        self._data[session_id] = (created_at, session.model_dump())

    def delete(self, session_id: str) -> None:
        self._data.pop(session_id, None)

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [sid for sid, (created_at, _) in self._data.items() if now - created_at >= self.max_age]
        for sid in expired:
            del self._data[sid]
        return len(expired)


class SessionMiddleware(BaseHTTPMiddleware):
    """
    Loads the session for the incoming cookie into ``request.state.session``
    and commits it back to the store once the response has been produced.
    The cookie carries only the session id, signed with the session secret.
    """

    def __init__(
        self,
        app,
        store: InMemorySessionStore,
        secret_key: str,
        cookie_name: str,
        max_age: int,
        secure: bool = False,
    ):
        super().__init__(app)
        self.store = store
        self.signer = TimestampSigner(secret_key, salt=SESSION_COOKIE_SALT)
        self.cookie_name = cookie_name
        self.max_age = max_age
        self.secure = secure

    def _unsign(self, cookie_value: str) -> typing.Optional[str]:
        try:
            return self.signer.unsign(cookie_value, max_age=self.max_age).decode("utf-8")
        except SignatureExpired:
            logger.info("Session cookie expired; starting a new session.")
        except BadSignature:
            logger.warning("Session cookie with invalid signature ignored.")
        return None

    async def dispatch(self, request, call_next):
        session_id = None
        session = None
        cookie_value = request.cookies.get(self.cookie_name)
        if cookie_value:
            session_id = self._unsign(cookie_value)
            if session_id is not None:
                session = self.store.load(session_id)

        had_session = session is not None
        if session is None:
            self.store.purge_expired()
            session_id = self.store.new_session_id()
            session = SessionData()

        request.state.session_id = session_id
        request.state.session = session
        response: StarletteResponse = await call_next(request)

        # Handlers may replace the object, e.g. on logout.
        session = request.state.session
        if session.is_empty():
            if had_session:
                self.store.delete(session_id)
                response.delete_cookie(
                    self.cookie_name, httponly=True, secure=self.secure, samesite="lax"
                )
            return response

        self.store.save(session_id, session)
        if not had_session:
            response.set_cookie(
                self.cookie_name,
                self.signer.sign(session_id).decode("utf-8"),
                max_age=self.max_age,
                httponly=True,
                secure=self.secure,
                samesite="lax",
            )
        return response


def get_session(request: Request) -> SessionData:
    return request.state.session
