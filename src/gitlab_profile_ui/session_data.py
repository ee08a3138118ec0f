# src/gitlab_profile_ui/session_data.py

from typing import Optional

from pydantic import BaseModel


class SessionData(BaseModel):
    """
    Represents the data stored server-side for a user session.
    Only a signed session ID is stored in the browser cookie.
    """
    csrf: Optional[str] = None
    access_token: Optional[str] = None
    message: Optional[str] = None

    def is_empty(self) -> bool:
        return self.csrf is None and self.access_token is None and self.message is None
