from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class DashboardStats(BaseModel):
    total_tasks: int = 0
    completed_tasks: int = 0
    in_progress_tasks: int = 0
    overdue_tasks: int = 0
    total_projects: int = 0
    active_projects: int = 0


class PriorityCount(BaseModel):
    priority: str
    count: int


class TeamPerformance(BaseModel):
    user_id: UUID
    name: str
    avatar: Optional[str] = None
    completed: int = 0
    in_progress: int = 0
    total: int = 0


class MetricsRead(BaseModel):
    stats: DashboardStats
    priority_distribution: List[PriorityCount] = Field(default_factory=list)
    team_performance: List[TeamPerformance] = Field(default_factory=list)
