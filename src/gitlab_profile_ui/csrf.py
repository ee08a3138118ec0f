# src/gitlab_profile_ui/csrf.py

import base64
import logging
import secrets
import typing

from .exceptions import CSRFValidationError
from .session_data import SessionData

logger = logging.getLogger(__name__)

CSRF_TOKEN_BYTES = 100


def generate_csrf(session: SessionData) -> str:
    """
    Stores a random token on the session unless one is already there.
    The token lives as long as the session and is never rotated.
    """
    if session.csrf is None:
        session.csrf = base64.b64encode(secrets.token_bytes(CSRF_TOKEN_BYTES)).decode("ascii")
        logger.debug("Generated new CSRF token for session.")
    return session.csrf


def validate_csrf(observed_state: typing.Optional[str], session: SessionData) -> None:
    """
    Compares the ``state`` GitLab sent back with the session token.

    A ``+`` in the base64 token arrives as a space once the query string has
    been decoded, so spaces are turned back into ``+`` before comparing.
    Raises CSRFValidationError on any mismatch.
    """
    if not observed_state or not session.csrf:
        logger.warning("CSRF validation failed: state or session token missing.")
        raise CSRFValidationError("Authentication state missing.")

    state = observed_state.replace(" ", "+")
    if not secrets.compare_digest(state.encode("utf-8"), session.csrf.encode("utf-8")):
        logger.warning("CSRF validation failed: state mismatch.")
        raise CSRFValidationError("Authentication state mismatch. Possible CSRF attack.")
