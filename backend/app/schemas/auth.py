# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

from app.exceptions import ForbiddenError, InvalidInputError
from app.models.enums import Role


class AuthContext(BaseModel):
    """Authenticated caller, as provided by the auth layer."""

    user_id: uuid.UUID
    role: Role = Role.EMPLOYEE
    employee_id: uuid.UUID | None = None

    @property
    def is_privileged(self) -> bool:
        """Admins and managers may backdate and act on other employees' records."""
        return self.role in (Role.ADMIN, Role.MANAGER)

    def require_privileged(self) -> None:
        if not self.is_privileged:
            raise ForbiddenError("Admin or manager role required")

    def own_employee_id(self) -> uuid.UUID:
        """The caller's own employee id; employee-role callers must carry one."""
        if self.employee_id is None:
            raise ForbiddenError("No employee is linked to this account")
        return self.employee_id

    def target_employee_id(self, requested: uuid.UUID | None) -> uuid.UUID:
        """Resolve whose records an operation acts on.

        Self-service callers always act on themselves; privileged callers must
        name the employee.
        """
        if not self.is_privileged:
            return self.own_employee_id()
        if requested is None:
            raise InvalidInputError("employee_id is required")
        return requested
