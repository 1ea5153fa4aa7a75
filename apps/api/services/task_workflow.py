"""
Task & Sprint Workflow

State transitions on the project aggregate. Every function mutates the
session without committing; routers award badges and commit once.

Rules:
- Task status: any-to-any. Each real change appends a TaskStatusChange row.
  completed_at is stamped on the first entry into done and never rewritten.
- Sprint status: planning -> active -> completed, at most one active sprint
  per project.
"""

from datetime import date, datetime, timezone
from typing import List, Optional
from uuid import UUID
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.exceptions import ConflictError, NotFoundError, ValidationError
from models import (
    DailyCheckin,
    Project,
    ProjectStatus,
    Sprint,
    SprintStatus,
    Subtask,
    Task,
    TaskStatus,
    TaskStatusChange,
    User,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _in_utc(now: Optional[datetime]) -> datetime:
    """Caller-supplied instants are stored as UTC; naive ones already are."""
    if now is None:
        return _utcnow()
    if now.tzinfo is None:
        return now
    return now.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Ownership-checked loaders
# ---------------------------------------------------------------------------

def get_project_for_user(db: Session, user: User, project_id: UUID) -> Project:
    project = db.query(Project).filter(Project.id == project_id, Project.owner_id == user.id).first()
    if not project:
        raise NotFoundError("Project", str(project_id))
    return project


def get_sprint_for_user(db: Session, user: User, sprint_id: UUID) -> Sprint:
    sprint = (
        db.query(Sprint)
        .join(Project, Sprint.project_id == Project.id)
        .filter(Sprint.id == sprint_id, Project.owner_id == user.id)
        .first()
    )
    if not sprint:
        raise NotFoundError("Sprint", str(sprint_id))
    return sprint


def get_task_for_user(db: Session, user: User, task_id: UUID) -> Task:
    task = (
        db.query(Task)
        .join(Sprint, Task.sprint_id == Sprint.id)
        .join(Project, Sprint.project_id == Project.id)
        .filter(Task.id == task_id, Project.owner_id == user.id)
        .first()
    )
    if not task:
        raise NotFoundError("Task", str(task_id))
    return task


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

def change_task_status(
    db: Session,
    task: Task,
    new_status: TaskStatus,
    changed_by: User,
    now: Optional[datetime] = None,
) -> Task:
    """Move a task to any status, recording the transition."""
    new_value = TaskStatus(new_status).value
    if task.status == new_value:
        return task

    now = _in_utc(now)
    task.status_history.append(TaskStatusChange(
        changed_by_id=changed_by.id,
        from_status=task.status,
        to_status=new_value,
        changed_at=now,
    ))
    task.status = new_value

    if new_value == TaskStatus.DONE.value and task.completed_at is None:
        task.completed_at = now

    logger.debug(f"Task {task.id} -> {new_value}")
    return task


def plan_task_for_day(db: Session, task: Task, planned_date: Optional[date]) -> Task:
    """Plan a task for a calendar day, or unplan it with None."""
    task.planned_date = planned_date
    return task


def _next_position(db: Session, sprint: Sprint) -> int:
    current = db.query(func.max(Task.position)).filter(Task.sprint_id == sprint.id).scalar()
    return 0 if current is None else current + 1


def create_task(
    db: Session,
    sprint: Sprint,
    user: User,
    title: str,
    description: Optional[str] = None,
    story_points: Optional[int] = None,
    is_ai_assisted: bool = False,
) -> Task:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Task title must not be empty", field="title")

    task = Task(
        title=title,
        description=description,
        story_points=story_points,
        status=TaskStatus.BACKLOG.value,
        created_by_id=user.id,
        assignee_id=user.id,
        is_ai_assisted=is_ai_assisted,
        position=_next_position(db, sprint),
    )
    sprint.tasks.append(task)
    return task


def move_task(db: Session, task: Task, destination: Sprint) -> Task:
    """Move a task to another sprint of the same project."""
    source = task.sprint
    if source.project_id != destination.project_id:
        raise ValidationError("Tasks can only move between sprints of the same project", field="sprint_id")
    if source.id == destination.id:
        return task

    task.position = _next_position(db, destination)
    # Backref moves it between the two sprints' task collections.
    task.sprint = destination
    return task


def add_subtasks(
    db: Session,
    task: Task,
    user: User,
    titles: List[str],
    is_ai_assisted: bool = False,
) -> List[Subtask]:
    start = len(task.subtasks)
    created = []
    for offset, title in enumerate(t.strip() for t in titles if t and t.strip()):
        subtask = Subtask(
            title=title,
            position=start + offset,
            created_by_id=user.id,
            assignee_id=user.id,
            is_ai_assisted=is_ai_assisted,
        )
        task.subtasks.append(subtask)
        created.append(subtask)
    return created


def toggle_subtask(db: Session, task: Task, subtask_id: UUID) -> Subtask:
    for subtask in task.subtasks:
        if subtask.id == subtask_id:
            subtask.is_completed = not subtask.is_completed
            return subtask
    raise NotFoundError("Subtask", str(subtask_id))


# ---------------------------------------------------------------------------
# Sprints
# ---------------------------------------------------------------------------

def start_sprint(db: Session, sprint: Sprint) -> Sprint:
    """planning -> active. Only one active sprint per project."""
    if sprint.status != SprintStatus.PLANNING.value:
        raise ConflictError("Only planning sprints can be started")

    active = (
        db.query(Sprint)
        .filter(
            Sprint.project_id == sprint.project_id,
            Sprint.status == SprintStatus.ACTIVE.value,
            Sprint.id != sprint.id,
        )
        .first()
    )
    if active:
        raise ConflictError(f"Sprint {active.sprint_number} is already active in this project")

    sprint.status = SprintStatus.ACTIVE.value
    return sprint


def complete_sprint(
    db: Session,
    sprint: Sprint,
    retrospective_good: Optional[str] = None,
    retrospective_improve: Optional[str] = None,
) -> Sprint:
    """active -> completed, recording velocity and retrospective notes."""
    if sprint.status != SprintStatus.ACTIVE.value:
        raise ConflictError("Only active sprints can be completed")

    sprint.velocity_points = sum(
        t.story_points or 0 for t in sprint.tasks if t.status == TaskStatus.DONE.value
    )
    sprint.retrospective_good = retrospective_good
    sprint.retrospective_improve = retrospective_improve
    sprint.status = SprintStatus.COMPLETED.value

    logger.info(f"Sprint {sprint.sprint_number} of project {sprint.project_id} completed "
                f"with {sprint.velocity_points} story points")
    return sprint


def get_velocity_trend(db: Session, project: Project) -> List[dict]:
    """
    Velocity per completed sprint, in sprint order.

    completion_rate is the percentage of the sprint's story points that were
    done when it closed (0 when the sprint had no estimated tasks).
    """
    trend = []
    for sprint in project.sprints:
        if sprint.status != SprintStatus.COMPLETED.value:
            continue
        total_points = sum(t.story_points or 0 for t in sprint.tasks)
        completed_points = sprint.velocity_points or 0
        trend.append({
            "sprint_id": sprint.id,
            "sprint_number": sprint.sprint_number,
            "completed_points": completed_points,
            "total_points": total_points,
            "completion_rate": round(completed_points / total_points * 100, 1) if total_points else 0.0,
            "sprint_duration_weeks": project.sprint_duration_weeks,
        })
    return trend


# ---------------------------------------------------------------------------
# Projects & users
# ---------------------------------------------------------------------------

def set_project_status(db: Session, project: Project, status: ProjectStatus) -> Project:
    new_value = ProjectStatus(status).value
    if project.status == ProjectStatus.COMPLETED.value and new_value != project.status:
        raise ConflictError("Completed projects cannot be reopened")
    project.status = new_value
    return project


def record_checkin(db: Session, user: User, notes: Optional[str] = None, now: Optional[datetime] = None) -> DailyCheckin:
    checkin = DailyCheckin(user_id=user.id, checked_in_at=_in_utc(now), notes=notes)
    db.add(checkin)
    return checkin
