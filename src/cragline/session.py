"""Explicit session context passed to every component that needs the current user."""

from __future__ import annotations

from dataclasses import dataclass

from cragline.errors import NotAuthenticatedError


@dataclass(frozen=True)
class Session:
    """Who is using the app right now."""

    user_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    def require_user(self) -> str:
        """Return the signed-in user id or raise."""
        if not self.user_id:
            raise NotAuthenticatedError()
        return self.user_id


ANONYMOUS = Session()
