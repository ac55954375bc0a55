"""
FastAPI dependencies for authentication.

Usage:
    from chatgpz.auth.dependencies import get_current_user

    @app.get("/api/something")
    def something(user: dict = Depends(get_current_user)):
        ...

Sessions are issued outside this package; we only resolve the cookie to a
user id. With auth disabled every request belongs to the local user.
"""

from fastapi import HTTPException, Request, status

SESSION_COOKIE = "chatgpz_session"

LOCAL_USER = {"id": "local", "name": "Local User"}


def is_auth_enabled(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return bool(settings and settings.auth_enabled)


def get_current_user(request: Request) -> dict:
    """
    Resolve the requesting user.
    Raises 401 if auth is enabled and the session cookie is missing or invalid.
    """
    if not is_auth_enabled(request):
        return dict(LOCAL_USER)

    session_id = request.cookies.get(SESSION_COOKIE)
    if not session_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    user_id = request.app.state.store.get_session_user(session_id)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired or invalid",
        )

    return {"id": user_id}

