"""
Pydantic schemas for the dashboard.
"""
from pydantic import BaseModel


class DashboardStats(BaseModel):
    total_inspections: int
    pending_inspections: int
    in_progress_inspections: int
    completed_inspections: int
    total_action_items: int
    open_action_items: int
    overdue_action_items: int
    scope: dict
