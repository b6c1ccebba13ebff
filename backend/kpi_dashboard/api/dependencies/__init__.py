"""Shared FastAPI dependencies."""

from .auth import build_current_user, ensure_admin, ensure_can_access

__all__ = ["build_current_user", "ensure_admin", "ensure_can_access"]
