"""
Current User API Router

Profile, settings, earned badges, AI usage and daily check-ins for the
token's user.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import List, Optional

from core.database import get_db
from core.auth import get_current_user
from models import User
from schemas import AIUsageResponse, CheckinActionResponse, EarnedBadgeResponse, UserResponse
from services.ai_usage_gate import AIUsageGate
from services.gamification import award_new_badges, list_earned_badges
from services.task_workflow import record_checkin
from services.user_settings import update_user_settings

router = APIRouter(prefix="/v1/me", tags=["Me"])


class CheckinCreate(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=2000)


class SettingsUpdate(BaseModel):
    """Only the fields sent are changed."""
    sprint_duration_weeks: Optional[int] = None  # 1 or 2
    timezone: Optional[str] = Field(default=None, max_length=64)  # IANA name, e.g. "Europe/Istanbul"
    ai_coach_name: Optional[str] = None


@router.get("", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch("/settings", response_model=UserResponse)
async def update_my_settings(
    body: SettingsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    update_user_settings(db, current_user, **body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(current_user)
    return current_user


@router.get("/badges", response_model=List[EarnedBadgeResponse])
async def get_my_badges(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return list_earned_badges(db, current_user)


@router.get("/ai-usage", response_model=AIUsageResponse)
async def get_my_ai_usage(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Free-tier usage against the limit; paid tiers report unlimited."""
    return AIUsageGate(db).get_usage_status(current_user)


@router.post("/checkins", response_model=CheckinActionResponse, status_code=status.HTTP_201_CREATED)
async def create_checkin(
    body: Optional[CheckinCreate] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Check in for today. Several check-ins per day are fine."""
    body = body or CheckinCreate()
    checkin = record_checkin(db, current_user, notes=body.notes)
    new_badges = award_new_badges(db, current_user)
    db.commit()
    db.refresh(checkin)
    return {"checkin": checkin, "new_badges": new_badges}
