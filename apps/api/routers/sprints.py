"""
Sprints API Router

Sprint lifecycle (start, complete with retrospective) and manual tasks.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID

from core.database import get_db
from core.auth import get_current_user
from models import User
from schemas import SprintActionResponse, SprintResponse, TaskActionResponse
from services.gamification import award_new_badges
from services.task_workflow import complete_sprint, create_task, get_sprint_for_user, start_sprint

router = APIRouter(prefix="/v1/sprints", tags=["Sprints"])


class SprintCompletion(BaseModel):
    retrospective_good: Optional[str] = None  # What went well
    retrospective_improve: Optional[str] = None  # What to improve next sprint


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    description: Optional[str] = None
    story_points: Optional[int] = Field(default=None, ge=0, le=100)


@router.get("/{sprint_id}", response_model=SprintResponse)
async def get_sprint(
    sprint_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return get_sprint_for_user(db, current_user, sprint_id)


@router.post("/{sprint_id}/start", response_model=SprintActionResponse)
async def start(
    sprint_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    sprint = get_sprint_for_user(db, current_user, sprint_id)
    start_sprint(db, sprint)
    new_badges = award_new_badges(db, current_user)
    db.commit()
    return {"sprint": sprint, "new_badges": new_badges}


@router.post("/{sprint_id}/complete", response_model=SprintActionResponse)
async def complete(
    sprint_id: UUID,
    body: Optional[SprintCompletion] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Close the sprint and record the retrospective.

    The next sprint is not started automatically.
    """
    body = body or SprintCompletion()
    sprint = get_sprint_for_user(db, current_user, sprint_id)
    complete_sprint(db, sprint, body.retrospective_good, body.retrospective_improve)
    new_badges = award_new_badges(db, current_user)
    db.commit()
    return {"sprint": sprint, "new_badges": new_badges}


@router.post("/{sprint_id}/tasks", response_model=TaskActionResponse, status_code=status.HTTP_201_CREATED)
async def add_task(
    sprint_id: UUID,
    body: TaskCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    sprint = get_sprint_for_user(db, current_user, sprint_id)
    task = create_task(
        db,
        sprint,
        current_user,
        title=body.title,
        description=body.description,
        story_points=body.story_points,
    )
    new_badges = award_new_badges(db, current_user)
    db.commit()
    db.refresh(task)
    return {"task": task, "new_badges": new_badges}
