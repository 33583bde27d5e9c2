"""Boundary with the identity provider: who is calling and with which role."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from fastapi import Header, HTTPException, status
from pydantic import BaseModel, ConfigDict

from .db.session import session_scope


class Role(str, Enum):
    USER = "USER"
    EDITOR = "EDITOR"
    ADMIN = "ADMIN"


class UserSnapshot(BaseModel):
    """Read-only view of the caller. The core only ever increments total_xp/streak."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: Optional[str] = None
    role: Role = Role.USER
    level: str = "A1"
    total_xp: int = 0
    streak: int = 0
    last_active: Optional[datetime] = None


def get_current_user(x_user_id: Optional[str] = Header(default=None)) -> UserSnapshot:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    from .repositories.users import users

    with session_scope(commit=False) as session:
        user = users.get(session, x_user_id.strip())
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return user


def require_roles(*roles: Role) -> Callable[..., UserSnapshot]:
    allowed = set(roles)

    def _dependency(x_user_id: Optional[str] = Header(default=None)) -> UserSnapshot:
        user = get_current_user(x_user_id)
        if user.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user

    return _dependency


require_user = require_roles(Role.USER, Role.EDITOR, Role.ADMIN)
require_admin = require_roles(Role.ADMIN)

__all__ = [
    "Role",
    "UserSnapshot",
    "get_current_user",
    "require_admin",
    "require_roles",
    "require_user",
]
