"""
Project Planning Service

AI-assisted planning flows. Each one:

1. checks tier limits,
2. calls the AI provider through the usage gate with an explicit fallback,
3. turns the suggestions into persisted sprints/tasks/subtasks,
4. awards badges and commits once.

Provider failures never escape as 500s: they are logged and treated as
"no suggestions", flagged with suggestions_failed so the UI can say so.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional
import asyncio
import logging

from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import ConflictError, UpgradeRequiredError, ValidationError
from models import Project, ProjectStatus, Sprint, Subtask, Task, User
from services.ai_provider import AIProvider, AIProviderError, LearningResources
from services.ai_usage_gate import AIUsageGate
from services.badge_catalog import BadgeDefinition
from services.gamification import award_new_badges
from services.sprint_allocator import (
    VALID_SPRINT_DURATION_WEEKS,
    PlannedTask,
    allocate_sprints,
    clamp_sprint_number,
    materialize_task,
)
from services.task_workflow import add_subtasks

logger = logging.getLogger(__name__)

DEFAULT_REQUESTED_SPRINTS = 12
MAX_REQUESTED_SPRINTS = 52


@dataclass
class ProjectDraft:
    """User input for a new project."""
    title: str
    description: Optional[str] = None
    color_theme: str = "indigo"
    requested_sprints: int = DEFAULT_REQUESTED_SPRINTS
    sprint_duration_weeks: Optional[int] = None  # None = user's setting
    target_completion_date: Optional[date] = None


@dataclass
class PlanningOutcome:
    project: Project
    quota_exceeded: bool = False
    suggestions_failed: bool = False
    tasks_added: int = 0
    new_badges: List[BadgeDefinition] = field(default_factory=list)


@dataclass
class BreakdownOutcome:
    task: Task
    subtasks: List[Subtask] = field(default_factory=list)
    learning_resources: Optional[LearningResources] = None
    quota_exceeded: bool = False
    suggestions_failed: bool = False
    new_badges: List[BadgeDefinition] = field(default_factory=list)


def _count_active_projects(db: Session, user: User) -> int:
    return (
        db.query(Project)
        .filter(Project.owner_id == user.id, Project.status == ProjectStatus.ACTIVE.value)
        .count()
    )


def _task_row(planned: PlannedTask, position: int) -> Task:
    return Task(
        title=planned.title,
        description=planned.description,
        story_points=planned.story_points,
        status=planned.status,
        created_by_id=planned.created_by,
        assignee_id=planned.assignee_id,
        is_ai_assisted=planned.is_ai_assisted,
        position=position,
        subtasks=[
            Subtask(
                title=s.title,
                position=i,
                is_completed=s.is_completed,
                created_by_id=s.created_by,
                assignee_id=s.assignee_id,
                is_ai_assisted=s.is_ai_assisted,
            )
            for i, s in enumerate(planned.subtasks)
        ],
    )


async def _gated_task_suggestions(
    gate: AIUsageGate,
    user: User,
    provider: AIProvider,
    title: str,
    description: Optional[str],
    total_sprints: int,
):
    """Returns (suggestions, quota_exceeded, failed)."""
    try:
        result = await gate.run(
            user,
            lambda: provider.suggest_tasks(title, description, total_sprints, user.ai_coach_name),
            fallback=[],
            timeout_s=settings.AI_REQUEST_TIMEOUT_S,
        )
    except (AIProviderError, asyncio.TimeoutError) as e:
        logger.warning(
            f"AI task suggestions failed for '{title}': {e}",
            extra={"extra_fields": {"user_id": str(user.id)}},
        )
        return [], False, True
    return result.value, result.quota_exceeded, False


async def create_project_with_ai(
    db: Session,
    user: User,
    provider: AIProvider,
    data: ProjectDraft,
    today: date,
) -> PlanningOutcome:
    """
    Create a project whose sprints and tasks come from AI suggestions.

    Quota exhaustion or a provider failure still creates the project, with a
    single active empty sprint.
    """
    title = (data.title or "").strip()
    if not title:
        raise ValidationError("Project title must not be empty", field="title")
    if not 1 <= data.requested_sprints <= MAX_REQUESTED_SPRINTS:
        raise ValidationError(
            f"requested_sprints must be between 1 and {MAX_REQUESTED_SPRINTS}", field="requested_sprints"
        )
    duration_weeks = data.sprint_duration_weeks or user.sprint_duration_weeks
    if duration_weeks not in VALID_SPRINT_DURATION_WEEKS:
        raise ValidationError("sprint_duration_weeks must be 1 or 2", field="sprint_duration_weeks")

    if user.is_free_tier and _count_active_projects(db, user) >= settings.FREE_TIER_PROJECT_LIMIT:
        raise UpgradeRequiredError(
            f"Free plan is limited to {settings.FREE_TIER_PROJECT_LIMIT} active project(s)"
        )

    gate = AIUsageGate(db)
    suggestions, quota_exceeded, failed = await _gated_task_suggestions(
        gate, user, provider, title, data.description, data.requested_sprints
    )

    plan = allocate_sprints(
        suggestions,
        requested_total_sprints=data.requested_sprints,
        sprint_duration_weeks=duration_weeks,
        anchor=today,
        created_by=user.id,
        project_title=title,
    )

    project = Project(
        owner_id=user.id,
        title=title,
        description=data.description,
        color_theme=data.color_theme,
        status=ProjectStatus.ACTIVE.value,
        total_sprints=plan.total_sprints,
        sprint_duration_weeks=duration_weeks,
        target_completion_date=data.target_completion_date,
        estimated_completion_date=plan.estimated_completion_date,
    )
    for planned_sprint in plan.sprints:
        project.sprints.append(Sprint(
            sprint_number=planned_sprint.sprint_number,
            goal=planned_sprint.goal,
            status=planned_sprint.status,
            start_date=planned_sprint.start_date,
            end_date=planned_sprint.end_date,
            tasks=[_task_row(t, i) for i, t in enumerate(planned_sprint.tasks)],
        ))
    db.add(project)

    new_badges = award_new_badges(db, user)
    db.commit()
    db.refresh(project)

    logger.info(
        f"Created project '{title}' with {plan.total_sprints} sprint(s) and {len(suggestions)} task(s)",
        extra={"extra_fields": {
            "user_id": str(user.id),
            "project_id": str(project.id),
            "quota_exceeded": quota_exceeded,
            "suggestions_failed": failed,
        }},
    )
    return PlanningOutcome(
        project=project,
        quota_exceeded=quota_exceeded,
        suggestions_failed=failed,
        tasks_added=len(suggestions),
        new_badges=new_badges,
    )


async def add_ai_suggestions_to_project(
    db: Session,
    user: User,
    provider: AIProvider,
    project: Project,
) -> PlanningOutcome:
    """Ask for more tasks and drop them into the existing sprints."""
    if project.status == ProjectStatus.COMPLETED.value:
        raise ConflictError("Cannot add suggestions to a completed project")

    gate = AIUsageGate(db)
    suggestions, quota_exceeded, failed = await _gated_task_suggestions(
        gate, user, provider, project.title, project.description, project.total_sprints
    )

    sprints_by_number = {s.sprint_number: s for s in project.sprints}
    last_number = max(sprints_by_number)
    next_position = {
        n: max((t.position for t in s.tasks), default=-1) + 1 for n, s in sprints_by_number.items()
    }

    added = 0
    for suggestion in suggestions:
        number = clamp_sprint_number(suggestion.suggested_sprint_number, last_number)
        sprint = sprints_by_number[number]
        sprint.tasks.append(_task_row(materialize_task(suggestion, user.id), next_position[number]))
        next_position[number] += 1
        added += 1

    new_badges = award_new_badges(db, user)
    db.commit()
    db.refresh(project)

    return PlanningOutcome(
        project=project,
        quota_exceeded=quota_exceeded,
        suggestions_failed=failed,
        tasks_added=added,
        new_badges=new_badges,
    )


async def break_down_task(
    db: Session,
    user: User,
    provider: AIProvider,
    task: Task,
    include_resources: bool = True,
) -> BreakdownOutcome:
    """
    Help with a stuck task: AI subtasks plus optional learning material.

    Each provider call is gated separately and has its own fallback. Both
    calls finish before the task is touched, since the gate commits its
    reservations.
    """
    gate = AIUsageGate(db)
    outcome = BreakdownOutcome(task=task)
    task_title = task.title

    titles: List[str] = []
    try:
        result = await gate.run(
            user,
            lambda: provider.suggest_subtasks(task_title),
            fallback=[],
            timeout_s=settings.AI_REQUEST_TIMEOUT_S,
        )
        titles = result.value
        outcome.quota_exceeded = result.quota_exceeded
    except (AIProviderError, asyncio.TimeoutError) as e:
        logger.warning(f"AI subtask breakdown failed for task {task.id}: {e}")
        outcome.suggestions_failed = True

    if include_resources and not outcome.quota_exceeded:
        try:
            result = await gate.run(
                user,
                lambda: provider.suggest_learning_resources(task_title),
                fallback=None,
                timeout_s=settings.AI_REQUEST_TIMEOUT_S,
            )
            outcome.learning_resources = result.value
            outcome.quota_exceeded = result.quota_exceeded
        except (AIProviderError, asyncio.TimeoutError) as e:
            logger.warning(f"AI learning resources failed for task {task.id}: {e}")
            outcome.suggestions_failed = True

    outcome.subtasks = add_subtasks(db, task, user, titles, is_ai_assisted=True)
    outcome.new_badges = award_new_badges(db, user)
    db.commit()
    db.refresh(task)
    return outcome
