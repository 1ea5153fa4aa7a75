"""
Gamification Service

Bridges the persisted aggregate and the pure badge engine:
read snapshot -> evaluate -> append UserBadge rows.

award_new_badges runs inside the caller's transaction after every mutating
action, so the mutation and the badge grant commit (or roll back) together.

Timestamps are stored in UTC. SQLite hands them back naive, so they are
tagged as UTC here before the engine converts them to the user's local time.
"""

from datetime import datetime, timezone
from typing import List, Optional
import logging

from sqlalchemy.orm import Session, selectinload

from models import DailyCheckin, Project, Sprint, Task, User, UserBadge
from services.badge_catalog import BadgeDefinition, get_badge
from services.badge_engine import (
    BadgeSnapshot,
    ProjectSnapshot,
    SprintSnapshot,
    TaskSnapshot,
    evaluate_badges,
)

logger = logging.getLogger(__name__)


def _as_utc(ts: Optional[datetime]) -> Optional[datetime]:
    if ts is not None and ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def build_badge_snapshot(db: Session, user: User) -> BadgeSnapshot:
    """Read everything the badge rules need for one user."""
    earned = {
        badge_id
        for (badge_id,) in db.query(UserBadge.badge_id).filter(UserBadge.user_id == user.id).all()
    }
    checkins = tuple(
        _as_utc(ts)
        for (ts,) in db.query(DailyCheckin.checked_in_at)
        .filter(DailyCheckin.user_id == user.id)
        .order_by(DailyCheckin.checked_in_at)
        .all()
    )
    projects = (
        db.query(Project)
        .options(selectinload(Project.sprints).selectinload(Sprint.tasks))
        .filter(Project.owner_id == user.id)
        .order_by(Project.created_at)
        .populate_existing()
        .all()
    )

    return BadgeSnapshot(
        user_id=user.id,
        earned_badge_ids=frozenset(earned),
        checkin_history=checkins,
        projects=tuple(_project_snapshot(p) for p in projects),
        timezone=user.timezone,
    )


def _project_snapshot(project: Project) -> ProjectSnapshot:
    return ProjectSnapshot(
        status=project.status,
        sprints=tuple(
            SprintSnapshot(
                sprint_number=s.sprint_number,
                status=s.status,
                start_date=s.start_date,
                end_date=s.end_date,
                tasks=tuple(_task_snapshot(t) for t in s.tasks),
            )
            for s in project.sprints
        ),
    )


def _task_snapshot(task: Task) -> TaskSnapshot:
    return TaskSnapshot(
        status=task.status,
        completed_at=_as_utc(task.completed_at),
        planned_date=task.planned_date,
    )


def award_new_badges(db: Session, user: User) -> List[BadgeDefinition]:
    """
    Evaluate and persist newly earned badges.

    Flushes pending changes first so the snapshot sees the caller's mutation.
    Does not commit.
    """
    db.flush()
    snapshot = build_badge_snapshot(db, user)
    new_badges = evaluate_badges(snapshot)

    for badge in new_badges:
        db.add(UserBadge(user_id=user.id, badge_id=badge.id.value))

    if new_badges:
        db.flush()
        logger.info(
            f"User {user.id} earned {len(new_badges)} badge(s)",
            extra={"extra_fields": {
                "user_id": str(user.id),
                "badges": [b.id.value for b in new_badges],
            }},
        )
    return new_badges


def list_earned_badges(db: Session, user: User) -> List[dict]:
    """Earned badges with their catalog entries, oldest first."""
    rows = (
        db.query(UserBadge)
        .filter(UserBadge.user_id == user.id)
        .order_by(UserBadge.earned_at, UserBadge.badge_id)
        .all()
    )
    earned = []
    for row in rows:
        definition = get_badge(row.badge_id)
        if definition is None:
            continue
        earned.append({"badge": definition, "earned_at": row.earned_at})
    return earned
