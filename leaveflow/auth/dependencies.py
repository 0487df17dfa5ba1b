"""Auth dependencies — bearer JWT validation and admin checks.

Token issuance lives outside this service; the token's ``sub`` claim is the
caller's Employee id.
"""

from __future__ import annotations

import uuid
from typing import Callable

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.constants import UserRole
from leaveflow.common.exceptions import ForbiddenException
from leaveflow.config import settings
from leaveflow.core_hr.models import Employee
from leaveflow.database import get_db


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Employee:
    """Validate the JWT and return the authenticated, active Employee."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    try:
        employee_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token subject.")

    result = await db.execute(
        select(Employee).where(
            Employee.id == employee_id,
            Employee.is_active.is_(True),
        ),
    )
    employee = result.scalars().first()
    if employee is None:
        raise HTTPException(status_code=401, detail="User account is inactive or not found.")

    request.state.user_role = employee.role
    return employee


# ── Role-based dependencies ─────────────────────────────────────────

async def require_admin(
    employee: Employee = Depends(get_current_user),
) -> Employee:
    """Allow only employees whose role is ADMIN."""
    if employee.role != UserRole.ADMIN:
        raise ForbiddenException(detail="Only admins can perform this action.")
    return employee


def require_admin_type(*allowed_types: str) -> Callable:
    """Return a dependency that admits admins whose admin_type is allowed.

    With no arguments the allowed set is ``settings.REASSIGNMENT_ADMIN_TYPES``,
    read at request time.
    """

    async def _check(employee: Employee = Depends(require_admin)) -> Employee:
        allowed = set(allowed_types or settings.REASSIGNMENT_ADMIN_TYPES)
        admin_type = employee.admin_type.value if employee.admin_type else None
        if admin_type not in allowed:
            raise ForbiddenException(
                detail=f"Admin type '{admin_type}' is not permitted. Required: {sorted(allowed)}.",
            )
        return employee

    return _check
