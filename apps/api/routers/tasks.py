"""
Tasks API Router

Status changes, day planning, moves between sprints, subtasks and the AI
"I'm stuck" breakdown.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional
from datetime import date
from uuid import UUID

from core.database import get_db
from core.auth import get_current_user
from models import TaskStatus, User
from schemas import TaskActionResponse, TaskBreakdownResponse, TaskResponse
from services.ai_provider import AIProvider, get_ai_provider
from services.gamification import award_new_badges
from services.project_planning import break_down_task
from services.task_workflow import (
    change_task_status,
    get_sprint_for_user,
    get_task_for_user,
    move_task,
    plan_task_for_day,
    toggle_subtask,
)

router = APIRouter(prefix="/v1/tasks", tags=["Tasks"])


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


class TaskPlannedDate(BaseModel):
    planned_date: Optional[date] = None  # null = unplan


class TaskMove(BaseModel):
    sprint_id: UUID


class TaskBreakdownRequest(BaseModel):
    include_resources: bool = True


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return get_task_for_user(db, current_user, task_id)


@router.post("/{task_id}/status", response_model=TaskActionResponse)
async def update_status(
    task_id: UUID,
    body: TaskStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Move a task on the board. Finishing late or early can earn badges."""
    task = get_task_for_user(db, current_user, task_id)
    change_task_status(db, task, body.status, current_user)
    new_badges = award_new_badges(db, current_user)
    db.commit()
    return {"task": task, "new_badges": new_badges}


@router.put("/{task_id}/planned-date", response_model=TaskActionResponse)
async def update_planned_date(
    task_id: UUID,
    body: TaskPlannedDate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    task = get_task_for_user(db, current_user, task_id)
    plan_task_for_day(db, task, body.planned_date)
    new_badges = award_new_badges(db, current_user)
    db.commit()
    return {"task": task, "new_badges": new_badges}


@router.post("/{task_id}/move", response_model=TaskActionResponse)
async def move(
    task_id: UUID,
    body: TaskMove,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    task = get_task_for_user(db, current_user, task_id)
    destination = get_sprint_for_user(db, current_user, body.sprint_id)
    move_task(db, task, destination)
    new_badges = award_new_badges(db, current_user)
    db.commit()
    return {"task": task, "new_badges": new_badges}


@router.post("/{task_id}/subtasks/{subtask_id}/toggle", response_model=TaskActionResponse)
async def toggle(
    task_id: UUID,
    subtask_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    task = get_task_for_user(db, current_user, task_id)
    toggle_subtask(db, task, subtask_id)
    new_badges = award_new_badges(db, current_user)
    db.commit()
    return {"task": task, "new_badges": new_badges}


@router.post("/{task_id}/ai-breakdown", response_model=TaskBreakdownResponse)
async def ai_breakdown(
    task_id: UUID,
    body: Optional[TaskBreakdownRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    provider: AIProvider = Depends(get_ai_provider),
):
    """Break a stuck task into AI-suggested first steps."""
    body = body or TaskBreakdownRequest()
    task = get_task_for_user(db, current_user, task_id)
    outcome = await break_down_task(db, current_user, provider, task, include_resources=body.include_resources)
    return {
        "task": outcome.task,
        "subtasks_added": len(outcome.subtasks),
        "learning_resources": outcome.learning_resources,
        "quota_exceeded": outcome.quota_exceeded,
        "suggestions_failed": outcome.suggestions_failed,
        "new_badges": outcome.new_badges,
    }
