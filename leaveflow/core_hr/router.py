"""Core HR router — the caller's own employee record.

Routes:
    /employees/me — Profile of the authenticated employee
"""


from fastapi import APIRouter, Depends

from leaveflow.auth.dependencies import get_current_user
from leaveflow.core_hr.models import Employee
from leaveflow.core_hr.schemas import EmployeeProfile

employees_router = APIRouter(prefix="", tags=["employees"])


# ── GET /employees/me ───────────────────────────────────────────────

@employees_router.get("/me", response_model=EmployeeProfile)
async def get_me(employee: Employee = Depends(get_current_user)):
    return EmployeeProfile.model_validate(employee)
