from pydantic import BaseModel, ConfigDict
from datetime import datetime, date
from uuid import UUID
from typing import Optional, List

from services.badge_catalog import BadgeId, BadgeType


class BadgeResponse(BaseModel):
    id: BadgeId
    name: str
    criteria: str
    icon: str
    badge_type: BadgeType

    model_config = ConfigDict(from_attributes=True)


class EarnedBadgeResponse(BaseModel):
    badge: BadgeResponse
    earned_at: datetime


class UserResponse(BaseModel):
    id: UUID
    created_at: datetime
    email: Optional[str]
    display_name: Optional[str]
    subscription_tier: str
    ai_usage_count: int
    timezone: Optional[str] = None
    sprint_duration_weeks: int
    ai_coach_name: str

    model_config = ConfigDict(from_attributes=True)


class AIUsageResponse(BaseModel):
    subscription_tier: str
    used: int
    limit: Optional[int]  # None = unlimited
    remaining: Optional[int]
    upgrade_required: bool


class DailyCheckinResponse(BaseModel):
    id: UUID
    user_id: UUID
    checked_in_at: datetime
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SubtaskResponse(BaseModel):
    id: UUID
    position: int
    title: str
    is_completed: bool
    is_ai_assisted: bool
    assignee_id: Optional[UUID] = None

    model_config = ConfigDict(from_attributes=True)


class TaskStatusChangeResponse(BaseModel):
    from_status: str
    to_status: str
    changed_by_id: UUID
    changed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TaskResponse(BaseModel):
    id: UUID
    sprint_id: UUID
    position: int
    title: str
    description: Optional[str] = None
    status: str
    story_points: Optional[int] = None
    created_by_id: UUID
    assignee_id: Optional[UUID] = None
    is_ai_assisted: bool
    planned_date: Optional[date] = None
    completed_at: Optional[datetime] = None
    subtasks: List[SubtaskResponse] = []
    status_history: List[TaskStatusChangeResponse] = []

    model_config = ConfigDict(from_attributes=True)


class SprintResponse(BaseModel):
    id: UUID
    project_id: UUID
    sprint_number: int
    goal: Optional[str] = None
    status: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    velocity_points: Optional[int] = None
    retrospective_good: Optional[str] = None
    retrospective_improve: Optional[str] = None
    tasks: List[TaskResponse] = []

    model_config = ConfigDict(from_attributes=True)


class ProjectSummaryResponse(BaseModel):
    id: UUID
    created_at: datetime
    title: str
    description: Optional[str] = None
    color_theme: str
    status: str
    total_sprints: int
    sprint_duration_weeks: int
    target_completion_date: Optional[date] = None
    estimated_completion_date: date

    model_config = ConfigDict(from_attributes=True)


class ProjectResponse(ProjectSummaryResponse):
    sprints: List[SprintResponse] = []


class VelocityPointResponse(BaseModel):
    sprint_id: UUID
    sprint_number: int
    completed_points: int
    total_points: int
    completion_rate: float  # percent of the sprint's story points done
    sprint_duration_weeks: int


# --- Action envelopes: every mutating endpoint reports badges earned by it ---

class BadgeAwardMixin(BaseModel):
    new_badges: List[BadgeResponse] = []


class ProjectActionResponse(BadgeAwardMixin):
    project: ProjectResponse


class ProjectPlanningResponse(ProjectActionResponse):
    quota_exceeded: bool = False  # True -> prompt upgrade
    suggestions_failed: bool = False
    tasks_added: int = 0


class SprintActionResponse(BadgeAwardMixin):
    sprint: SprintResponse


class TaskActionResponse(BadgeAwardMixin):
    task: TaskResponse


class ResourceLinkResponse(BaseModel):
    title: str
    url: str


class LearningResourcesResponse(BaseModel):
    paid_courses: List[ResourceLinkResponse] = []
    free_videos: List[ResourceLinkResponse] = []
    summary_article: str = ""

    model_config = ConfigDict(from_attributes=True)


class TaskBreakdownResponse(TaskActionResponse):
    subtasks_added: int = 0
    learning_resources: Optional[LearningResourcesResponse] = None
    quota_exceeded: bool = False
    suggestions_failed: bool = False


class CheckinActionResponse(BadgeAwardMixin):
    checkin: DailyCheckinResponse
