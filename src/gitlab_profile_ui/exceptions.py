# src/gitlab_profile_ui/exceptions.py

from typing import Optional


class CSRFValidationError(Exception):
    """The ``state`` returned by GitLab does not match the session's CSRF token."""


class GitLabAPIError(Exception):
    """A call to GitLab failed: transport error, non-2xx status or unparsable body."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (status {self.status_code})"
        return self.message
