"""
Badges API Router

Public badge catalog.
"""

from fastapi import APIRouter
from typing import List

from schemas import BadgeResponse
from services.badge_catalog import BADGE_CATALOG

router = APIRouter(prefix="/v1/badges", tags=["Badges"])


@router.get("", response_model=List[BadgeResponse])
async def list_badges():
    return list(BADGE_CATALOG)
