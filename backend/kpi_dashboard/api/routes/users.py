"""Admin user directory and the caller's own record."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from kpi_dashboard.api.dependencies.auth import build_current_user, ensure_admin
from kpi_dashboard.db.session import Database
from kpi_dashboard.models import User
from kpi_dashboard.schemas import UserSchema
from kpi_dashboard.services import reporting
from kpi_dashboard.services.repository import DataServiceError


def get_users_router(database: Database) -> APIRouter:
    router = APIRouter(prefix="/users", tags=["users"])
    current_user = build_current_user(database)

    @router.get("", response_model=list[UserSchema])
    async def list_users(user: User = Depends(current_user)) -> list[UserSchema]:
        ensure_admin(user)
        try:
            users = await reporting.list_users(database)
        except DataServiceError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
        return [UserSchema.model_validate(row) for row in users]

    @router.get("/me", response_model=UserSchema)
    async def me(user: User = Depends(current_user)) -> UserSchema:
        return UserSchema.model_validate(user)

    return router


__all__ = ["get_users_router"]
