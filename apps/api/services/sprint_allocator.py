"""
Sprint Allocator

Turns a flat list of AI task suggestions (each tagged with a suggested
sprint number) into a project's sprint structure:

- sprint count = max(1, highest suggested sprint number after clamping)
- every sprint 1..N exists, even when no task landed in it
- date ranges are contiguous and non-overlapping, inclusive end dates
- sprint 1 starts active, the rest start in planning

Pure computation: persistence is the caller's job.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional, Sequence
from uuid import UUID

from models import SprintStatus, TaskStatus
from services.ai_provider import AITaskSuggestion

VALID_SPRINT_DURATION_WEEKS = (1, 2)


@dataclass
class PlannedSubtask:
    title: str
    created_by: UUID
    assignee_id: Optional[UUID]
    is_ai_assisted: bool = True
    is_completed: bool = False


@dataclass
class PlannedTask:
    title: str
    description: Optional[str]
    story_points: Optional[int]
    created_by: UUID
    assignee_id: Optional[UUID]
    status: str = TaskStatus.BACKLOG.value
    is_ai_assisted: bool = True
    subtasks: List[PlannedSubtask] = field(default_factory=list)
    status_history: List[dict] = field(default_factory=list)


@dataclass
class PlannedSprint:
    sprint_number: int
    status: str
    start_date: date
    end_date: date
    goal: str
    tasks: List[PlannedTask] = field(default_factory=list)


@dataclass
class AllocationPlan:
    sprints: List[PlannedSprint]
    total_sprints: int
    estimated_completion_date: date


def clamp_sprint_number(suggested: int, total_sprints: int) -> int:
    """Clamp a suggested sprint number into [1, total_sprints]."""
    return max(1, min(suggested, total_sprints))


def materialize_task(suggestion: AITaskSuggestion, created_by: UUID) -> PlannedTask:
    """Build a full task (with subtask scaffolding) from one suggestion."""
    return PlannedTask(
        title=suggestion.title,
        description=suggestion.description,
        story_points=suggestion.story_points,
        created_by=created_by,
        assignee_id=created_by,
        subtasks=[
            PlannedSubtask(title=title, created_by=created_by, assignee_id=created_by)
            for title in suggestion.subtasks
        ],
    )


def allocate_sprints(
    suggestions: Sequence[AITaskSuggestion],
    requested_total_sprints: int,
    sprint_duration_weeks: int,
    anchor: date,
    created_by: UUID,
    project_title: str = "",
) -> AllocationPlan:
    """
    Partition suggestions into sprint buckets and date the sprints.

    Args:
        suggestions: AI suggestions in the order the provider returned them
        requested_total_sprints: Sprint count the provider was asked to plan for
        sprint_duration_weeks: 1 or 2
        anchor: First day of sprint 1 (project creation day)
        created_by: Requesting user, recorded as creator and assignee
        project_title: Used for sprint goal text

    Returns:
        AllocationPlan. The final sprint count trusts the highest suggested
        bucket, not the requested count.
    """
    if requested_total_sprints < 1:
        raise ValueError(f"requested_total_sprints must be >= 1, got {requested_total_sprints}")
    if sprint_duration_weeks not in VALID_SPRINT_DURATION_WEEKS:
        raise ValueError(f"sprint_duration_weeks must be 1 or 2, got {sprint_duration_weeks}")

    duration_days = sprint_duration_weeks * 7

    numbered = [
        (clamp_sprint_number(s.suggested_sprint_number, requested_total_sprints), s)
        for s in suggestions
    ]
    max_observed = max((n for n, _ in numbered), default=0)
    final_num_sprints = max(1, max_observed)

    sprints: List[PlannedSprint] = []
    current = anchor
    for i in range(1, final_num_sprints + 1):
        bucket = [materialize_task(s, created_by) for n, s in numbered if n == i]
        sprints.append(PlannedSprint(
            sprint_number=i,
            status=SprintStatus.ACTIVE.value if i == 1 else SprintStatus.PLANNING.value,
            start_date=current,
            end_date=current + timedelta(days=duration_days - 1),
            goal=f"Phase {i} of {project_title}" if project_title else f"Phase {i}",
            tasks=bucket,
        ))
        # Advance even when the bucket was empty so dates stay contiguous.
        current = current + timedelta(days=duration_days)

    return AllocationPlan(
        sprints=sprints,
        total_sprints=final_num_sprints,
        estimated_completion_date=current,
    )
