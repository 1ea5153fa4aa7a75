"""
Projects API Router

Project creation with AI sprint planning, listing, and status changes.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date
from uuid import UUID

from core.database import get_db
from core.auth import get_current_user
from models import Project, ProjectStatus, User
from schemas import (
    ProjectActionResponse,
    ProjectPlanningResponse,
    ProjectResponse,
    ProjectSummaryResponse,
    VelocityPointResponse,
)
from services.ai_provider import AIProvider, get_ai_provider
from services.gamification import award_new_badges
from services.project_planning import (
    DEFAULT_REQUESTED_SPRINTS,
    MAX_REQUESTED_SPRINTS,
    ProjectDraft,
    add_ai_suggestions_to_project,
    create_project_with_ai,
)
from services.task_workflow import get_project_for_user, get_velocity_trend, set_project_status

router = APIRouter(prefix="/v1/projects", tags=["Projects"])


class ProjectCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    color_theme: str = "indigo"
    requested_sprints: int = Field(default=DEFAULT_REQUESTED_SPRINTS, ge=1, le=MAX_REQUESTED_SPRINTS)
    sprint_duration_weeks: Optional[int] = Field(default=None, ge=1, le=2)  # None = user setting
    target_completion_date: Optional[date] = None


class ProjectStatusUpdate(BaseModel):
    status: ProjectStatus


@router.post("", response_model=ProjectPlanningResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    provider: AIProvider = Depends(get_ai_provider),
):
    """
    Create a project and let the AI plan its sprints.

    Free users out of AI quota still get the project (one empty sprint) with
    quota_exceeded=true.
    """
    outcome = await create_project_with_ai(
        db,
        current_user,
        provider,
        ProjectDraft(**body.model_dump()),
        today=date.today(),
    )
    return {
        "project": outcome.project,
        "quota_exceeded": outcome.quota_exceeded,
        "suggestions_failed": outcome.suggestions_failed,
        "tasks_added": outcome.tasks_added,
        "new_badges": outcome.new_badges,
    }


@router.get("", response_model=List[ProjectSummaryResponse])
async def list_projects(
    project_status: Optional[ProjectStatus] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Project).filter(Project.owner_id == current_user.id)
    if project_status:
        query = query.filter(Project.status == project_status.value)
    return query.order_by(Project.created_at.desc()).all()


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return get_project_for_user(db, current_user, project_id)


@router.get("/{project_id}/velocity", response_model=List[VelocityPointResponse])
async def get_project_velocity(
    project_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Completed story points per finished sprint, for the velocity chart."""
    project = get_project_for_user(db, current_user, project_id)
    return get_velocity_trend(db, project)


@router.post("/{project_id}/status", response_model=ProjectActionResponse)
async def update_project_status(
    project_id: UUID,
    body: ProjectStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Pause, resume or complete a project. Completing can earn Goal Hunter."""
    project = get_project_for_user(db, current_user, project_id)
    set_project_status(db, project, body.status)
    new_badges = award_new_badges(db, current_user)
    db.commit()
    db.refresh(project)
    return {"project": project, "new_badges": new_badges}


@router.post("/{project_id}/ai-suggestions", response_model=ProjectPlanningResponse)
async def request_ai_suggestions(
    project_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    provider: AIProvider = Depends(get_ai_provider),
):
    """Ask the AI for more tasks and add them to the existing sprints."""
    project = get_project_for_user(db, current_user, project_id)
    outcome = await add_ai_suggestions_to_project(db, current_user, provider, project)
    return {
        "project": outcome.project,
        "quota_exceeded": outcome.quota_exceeded,
        "suggestions_failed": outcome.suggestions_failed,
        "tasks_added": outcome.tasks_added,
        "new_badges": outcome.new_badges,
    }
