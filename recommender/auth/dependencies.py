from __future__ import annotations

from fastapi import Depends, HTTPException, Request

SESSION_KEY = "user"


def start_session(request: Request, user: dict) -> None:
    request.session.clear()
    request.session[SESSION_KEY] = user


def get_current_user(request: Request) -> dict | None:
    """Return the user dict from the session, or ``None``."""
    return request.session.get(SESSION_KEY)


def current_user_id(request: Request) -> str | None:
    """Session user id for endpoints where login is optional."""
    user = get_current_user(request)
    return user.get("id") if user else None


def require_user(request: Request) -> dict:
    """Raise 401 if no user is logged in."""
    user = get_current_user(request)
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_admin(user: dict = Depends(require_user)) -> dict:
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
