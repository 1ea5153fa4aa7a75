"""
Badge Evaluation Engine

Pure function from a user's activity snapshot to the badges newly earned.

Properties:
- Idempotent: badges already in the snapshot's earned set are skipped, so a
  second run over the updated snapshot yields nothing.
- Deterministic: no wall-clock reads, no randomness. Output follows catalog
  declaration order.
- Rules are independent; one rule never short-circuits another.

"Local" time means the user's IANA timezone. Naive timestamps are taken as
already local.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

from models import ProjectStatus, SprintStatus, TaskStatus
from services.badge_catalog import BADGE_CATALOG, BadgeDefinition, BadgeId

logger = logging.getLogger(__name__)

SPRINT_WARRIOR_MIN_COMPLETED = 3
STREAK_MASTER_MIN_DAYS = 5
NIGHT_OWL_FROM_HOUR = 22
EARLY_BIRD_BEFORE_HOUR = 7


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TaskSnapshot:
    status: str
    completed_at: Optional[datetime] = None
    planned_date: Optional[date] = None


@dataclass(frozen=True)
class SprintSnapshot:
    sprint_number: int
    status: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    tasks: Tuple[TaskSnapshot, ...] = ()


@dataclass(frozen=True)
class ProjectSnapshot:
    status: str
    sprints: Tuple[SprintSnapshot, ...] = ()


@dataclass(frozen=True)
class BadgeSnapshot:
    """Everything the rules read, captured once per evaluation."""
    user_id: Optional[UUID] = None
    earned_badge_ids: FrozenSet[str] = field(default_factory=frozenset)
    checkin_history: Tuple[datetime, ...] = ()
    projects: Tuple[ProjectSnapshot, ...] = ()
    timezone: Optional[str] = None


# ---------------------------------------------------------------------------
# Local time helpers
# ---------------------------------------------------------------------------

def _resolve_zone(tz_name: Optional[str]) -> Optional[ZoneInfo]:
    if not tz_name:
        return None
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{tz_name}', using timestamp offsets as-is")
        return None


def _to_local(ts: datetime, zone: Optional[ZoneInfo]) -> datetime:
    if ts.tzinfo is None or zone is None:
        return ts
    return ts.astimezone(zone)


def _done_tasks(snapshot: BadgeSnapshot) -> Iterable[TaskSnapshot]:
    for project in snapshot.projects or ():
        for sprint in project.sprints or ():
            for task in sprint.tasks or ():
                if task.status == TaskStatus.DONE.value and task.completed_at is not None:
                    yield task


def _date_span(start: date, end: date) -> Set[date]:
    days = set()
    current = start
    while current <= end:
        days.add(current)
        current += timedelta(days=1)
    return days


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def _goal_hunter(snapshot: BadgeSnapshot, zone: Optional[ZoneInfo]) -> bool:
    return any(p.status == ProjectStatus.COMPLETED.value for p in snapshot.projects or ())


def _sprint_warrior(snapshot: BadgeSnapshot, zone: Optional[ZoneInfo]) -> bool:
    for project in snapshot.projects or ():
        completed = sum(1 for s in project.sprints or () if s.status == SprintStatus.COMPLETED.value)
        if completed >= SPRINT_WARRIOR_MIN_COMPLETED:
            return True
    return False


def _streak_master(snapshot: BadgeSnapshot, zone: Optional[ZoneInfo]) -> bool:
    distinct_days = {_to_local(ts, zone).date() for ts in snapshot.checkin_history or ()}
    return len(distinct_days) >= STREAK_MASTER_MIN_DAYS


def _night_owl(snapshot: BadgeSnapshot, zone: Optional[ZoneInfo]) -> bool:
    return any(
        _to_local(t.completed_at, zone).hour >= NIGHT_OWL_FROM_HOUR
        for t in _done_tasks(snapshot)
    )


def _early_bird(snapshot: BadgeSnapshot, zone: Optional[ZoneInfo]) -> bool:
    return any(
        _to_local(t.completed_at, zone).hour < EARLY_BIRD_BEFORE_HOUR
        for t in _done_tasks(snapshot)
    )


def _planning_guru(snapshot: BadgeSnapshot, zone: Optional[ZoneInfo]) -> bool:
    for project in snapshot.projects or ():
        for sprint in project.sprints or ():
            if sprint.status != SprintStatus.ACTIVE.value:
                continue
            if sprint.start_date is None or sprint.end_date is None:
                continue
            sprint_days = _date_span(sprint.start_date, sprint.end_date)
            planned_days = {t.planned_date for t in sprint.tasks or () if t.planned_date is not None}
            if sprint_days and sprint_days <= planned_days:
                return True
    return False


BadgeRule = Callable[[BadgeSnapshot, Optional[ZoneInfo]], bool]

BADGE_RULES: Dict[BadgeId, BadgeRule] = {
    BadgeId.GOAL_HUNTER: _goal_hunter,
    BadgeId.SPRINT_WARRIOR: _sprint_warrior,
    BadgeId.STREAK_MASTER_5: _streak_master,
    BadgeId.NIGHT_OWL: _night_owl,
    BadgeId.EARLY_BIRD: _early_bird,
    BadgeId.PLANNING_GURU: _planning_guru,
}


def evaluate_badges(snapshot: BadgeSnapshot) -> List[BadgeDefinition]:
    """
    Return the badges whose criteria the snapshot meets and that are not
    already earned, in catalog order.
    """
    earned = set(snapshot.earned_badge_ids or ())
    zone = _resolve_zone(snapshot.timezone)

    newly_earned: List[BadgeDefinition] = []
    for definition in BADGE_CATALOG:
        if definition.id.value in earned:
            continue
        rule = BADGE_RULES[definition.id]
        if rule(snapshot, zone):
            newly_earned.append(definition)
            earned.add(definition.id.value)

    return newly_earned
