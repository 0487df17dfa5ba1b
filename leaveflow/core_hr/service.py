"""Core HR service layer — employee lookups used by the leave workflow."""

from __future__ import annotations

import uuid
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.constants import AdminType, UserRole
from leaveflow.common.exceptions import NotFoundException
from leaveflow.core_hr.models import Employee
from leaveflow.core_hr.schemas import AdminRef


# ═════════════════════════════════════════════════════════════════════
# EmployeeService
# ═════════════════════════════════════════════════════════════════════


class EmployeeService:
    """Async lookups for employees and admins."""

    @staticmethod
    async def get_active_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> Employee:
        """Fetch an active employee or raise NotFoundException.

        ``for_update`` locks the row so concurrent applications by the same
        employee serialize on PostgreSQL.
        """
        query = select(Employee).where(
            Employee.id == employee_id,
            Employee.is_active.is_(True),
        )
        if for_update:
            query = query.with_for_update()
        employee = (await db.execute(query)).scalars().first()
        if employee is None:
            raise NotFoundException("Employee", employee_id)
        return employee

    @staticmethod
    async def list_active_admins(
        db: AsyncSession,
        *,
        admin_types: Optional[Sequence[AdminType]] = None,
    ) -> list[AdminRef]:
        """Return ``[{id, admin_type}]`` for every active admin."""
        query = select(Employee.id, Employee.admin_type).where(
            Employee.role == UserRole.ADMIN,
            Employee.is_active.is_(True),
        )
        if admin_types:
            query = query.where(Employee.admin_type.in_(list(admin_types)))
        rows = (await db.execute(query.order_by(Employee.employee_code))).all()
        return [AdminRef(id=row.id, admin_type=row.admin_type) for row in rows]

    @staticmethod
    async def get_employees_by_ids(
        db: AsyncSession,
        employee_ids: Sequence[uuid.UUID],
    ) -> dict[uuid.UUID, Employee]:
        if not employee_ids:
            return {}
        result = await db.execute(
            select(Employee).where(Employee.id.in_(list(set(employee_ids)))),
        )
        return {emp.id: emp for emp in result.scalars().all()}
