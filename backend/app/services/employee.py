# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class EmployeeInfo(BaseModel):
    """Employee record as exposed by the employee directory."""

    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    hire_date: date | None = None  # None disables first-year proration


@runtime_checkable
class EmployeeService(Protocol):
    """Read-only employee directory consulted by the leave ledger."""

    async def get_employee(self, employee_id: uuid.UUID) -> EmployeeInfo | None:
        """Fetch one employee. Returns None if not found."""
        ...

    async def list_employees(self) -> list[EmployeeInfo]:
        """List every known employee."""
        ...


class InMemoryEmployeeService:
    """In-memory directory used in development and tests."""

    def __init__(self) -> None:
        self._employees: dict[uuid.UUID, EmployeeInfo] = {}

    def seed(self, employee: EmployeeInfo) -> None:
        """Add or replace an employee."""
        self._employees[employee.id] = employee

    def clear(self) -> None:
        self._employees.clear()

    async def get_employee(self, employee_id: uuid.UUID) -> EmployeeInfo | None:
        return self._employees.get(employee_id)

    async def list_employees(self) -> list[EmployeeInfo]:
        return sorted(self._employees.values(), key=lambda e: (e.last_name, e.first_name, str(e.id)))


_employee_service: EmployeeService = InMemoryEmployeeService()


def get_employee_service() -> EmployeeService:
    """Return the configured employee directory."""
    return _employee_service


def set_employee_service(service: EmployeeService) -> None:
    """Override the directory (for testing or production wiring)."""
    global _employee_service
    _employee_service = service
