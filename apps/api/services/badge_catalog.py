"""
Badge Catalog

Static, versioned list of every badge the product can award.
Bump CATALOG_VERSION whenever an entry is added or its criteria change.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from models import Badge

logger = logging.getLogger(__name__)

CATALOG_VERSION = 1


class BadgeId(str, Enum):
    GOAL_HUNTER = "goal-hunter"
    SPRINT_WARRIOR = "sprint-warrior"
    STREAK_MASTER_5 = "streak-master-5"
    NIGHT_OWL = "night-owl"
    EARLY_BIRD = "early-bird"
    PLANNING_GURU = "planning-guru"


class BadgeType(str, Enum):
    ACHIEVEMENT = "achievement"
    CONSISTENCY = "consistency"
    STREAK = "streak"
    PLANNING = "planning"


@dataclass(frozen=True)
class BadgeDefinition:
    """Immutable catalog entry."""
    id: BadgeId
    name: str
    criteria: str
    icon: str
    badge_type: BadgeType


# Declaration order is the order newly earned badges are reported in.
BADGE_CATALOG: Tuple[BadgeDefinition, ...] = (
    BadgeDefinition(
        id=BadgeId.GOAL_HUNTER,
        name="Goal Hunter",
        criteria="Successfully complete your first project.",
        icon="🎯",
        badge_type=BadgeType.ACHIEVEMENT,
    ),
    BadgeDefinition(
        id=BadgeId.SPRINT_WARRIOR,
        name="Sprint Warrior",
        criteria="Complete 3 sprints in the same project.",
        icon="🏃",
        badge_type=BadgeType.CONSISTENCY,
    ),
    BadgeDefinition(
        id=BadgeId.STREAK_MASTER_5,
        name="Streak Master",
        criteria="Check in on 5 different days.",
        icon="🔥",
        badge_type=BadgeType.STREAK,
    ),
    BadgeDefinition(
        id=BadgeId.NIGHT_OWL,
        name="Night Owl",
        criteria="Complete a task after 22:00.",
        icon="🦉",
        badge_type=BadgeType.ACHIEVEMENT,
    ),
    BadgeDefinition(
        id=BadgeId.EARLY_BIRD,
        name="Early Bird",
        criteria="Complete a task before 07:00.",
        icon="🐦",
        badge_type=BadgeType.ACHIEVEMENT,
    ),
    BadgeDefinition(
        id=BadgeId.PLANNING_GURU,
        name="Planning Guru",
        criteria="Plan at least one task for every day of an active sprint.",
        icon="🗓️",
        badge_type=BadgeType.PLANNING,
    ),
)

_BY_ID: Dict[str, BadgeDefinition] = {b.id.value: b for b in BADGE_CATALOG}


def get_badge(badge_id: str) -> Optional[BadgeDefinition]:
    """Look up a catalog entry by its string ID."""
    return _BY_ID.get(badge_id)


def sync_badge_catalog(db: Session) -> int:
    """
    Upsert the static catalog into the badge table.

    Called once at process start. Returns the number of rows written.
    Caller owns the transaction.
    """
    written = 0
    for definition in BADGE_CATALOG:
        row = db.query(Badge).filter(Badge.id == definition.id.value).first()
        if row is None:
            row = Badge(id=definition.id.value)
            db.add(row)
        elif row.catalog_version == CATALOG_VERSION:
            continue
        row.name = definition.name
        row.criteria = definition.criteria
        row.icon = definition.icon
        row.badge_type = definition.badge_type.value
        row.catalog_version = CATALOG_VERSION
        written += 1

    if written:
        db.flush()
        logger.info(f"Badge catalog v{CATALOG_VERSION} synced ({written} rows)")
    return written
