"""Request identity resolved from the auth proxy's ``X-User-Id`` header."""

from __future__ import annotations

from typing import Awaitable, Callable

from fastapi import Header, HTTPException, status

from kpi_dashboard.db.session import Database
from kpi_dashboard.models import User
from kpi_dashboard.services import reporting
from kpi_dashboard.services.repository import DataServiceError

CurrentUserDependency = Callable[..., Awaitable[User]]


def build_current_user(database: Database) -> CurrentUserDependency:
    async def get_current_user(x_user_id: str | None = Header(default=None)) -> User:
        if not x_user_id:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user context")
        try:
            user = await reporting.get_user(database, x_user_id)
        except DataServiceError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
        if user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
        return user

    return get_current_user


def ensure_admin(user: User) -> None:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")


def ensure_can_access(user: User, target_user_id: str) -> None:
    """Non-admins may only read or edit their own entries."""

    if user.is_admin:
        return
    if target_user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to access other users")


__all__ = ["build_current_user", "ensure_admin", "ensure_can_access", "CurrentUserDependency"]
