"""
User settings: default sprint length, IANA timezone and AI coach name.

The timezone drives every local-time badge rule, so it is checked against
the zoneinfo database before it is stored.
"""

from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

from sqlalchemy.orm import Session

from core.exceptions import ValidationError
from models import User
from services.sprint_allocator import VALID_SPRINT_DURATION_WEEKS

logger = logging.getLogger(__name__)

MAX_COACH_NAME_LENGTH = 50


def validate_timezone(tz_name: str) -> str:
    """Return the zone name if zoneinfo knows it, else raise ValidationError."""
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown timezone '{tz_name}'", field="timezone")
    return tz_name


def update_user_settings(
    db: Session,
    user: User,
    sprint_duration_weeks: Optional[int] = None,
    timezone: Optional[str] = None,
    ai_coach_name: Optional[str] = None,
) -> User:
    """
    Apply the given settings; None leaves a setting unchanged.

    Everything is validated before anything is assigned, so a rejected
    update leaves the user untouched. Existing projects keep the sprint
    length they were planned with.
    """
    if sprint_duration_weeks is not None and sprint_duration_weeks not in VALID_SPRINT_DURATION_WEEKS:
        raise ValidationError(
            f"sprint_duration_weeks must be one of {VALID_SPRINT_DURATION_WEEKS}",
            field="sprint_duration_weeks",
        )
    if timezone is not None:
        timezone = validate_timezone(timezone.strip())
    if ai_coach_name is not None:
        ai_coach_name = ai_coach_name.strip()
        if not ai_coach_name or len(ai_coach_name) > MAX_COACH_NAME_LENGTH:
            raise ValidationError(
                f"ai_coach_name must be 1-{MAX_COACH_NAME_LENGTH} characters",
                field="ai_coach_name",
            )

    if sprint_duration_weeks is not None:
        user.sprint_duration_weeks = sprint_duration_weeks
    if timezone is not None:
        user.timezone = timezone
    if ai_coach_name is not None:
        user.ai_coach_name = ai_coach_name

    logger.info(
        f"Settings updated for user {user.id}",
        extra={"extra_fields": {
            "user_id": str(user.id),
            "sprint_duration_weeks": user.sprint_duration_weeks,
            "timezone": user.timezone,
        }},
    )
    return user
