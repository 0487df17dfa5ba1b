"""Core HR module — the Employee record the leave workflow hangs off."""

from leaveflow.core_hr.models import Employee

__all__ = ["Employee"]
