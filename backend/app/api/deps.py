# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header

from app.models.enums import Role
from app.schemas.auth import AuthContext


async def get_auth_context(
    x_user_id: uuid.UUID = Header(),
    x_role: Role = Header(default=Role.EMPLOYEE),
    x_employee_id: uuid.UUID | None = Header(default=None),
) -> AuthContext:
    """Extract dev auth context from request headers."""
    return AuthContext(user_id=x_user_id, role=x_role, employee_id=x_employee_id)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_privileged(auth: AuthDep) -> AuthContext:
    """Require the admin or manager role for the request."""
    auth.require_privileged()
    return auth


PrivilegedDep = Annotated[AuthContext, Depends(require_privileged)]
