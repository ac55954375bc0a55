"""User-id contract for the HTTP layer."""

from .dependencies import LOCAL_USER, SESSION_COOKIE, get_current_user

__all__ = ["LOCAL_USER", "SESSION_COOKIE", "get_current_user"]
