"""Profile search API endpoints"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.security import get_current_user
from backend.app.models.user import User
from backend.app.schemas.envelope import ApiResponse
from backend.app.schemas.profile import ProfileSearchResponse
from backend.app.services.profile_query_service import ProfileQueryService

router = APIRouter()


@router.get("/profiles", response_model=ApiResponse[ProfileSearchResponse])
async def search_profiles(
    q: Optional[str] = Query(None, max_length=200, description="Text in title or summary"),
    location: Optional[str] = Query(None, max_length=255),
    experience: Optional[str] = Query(None, max_length=50),
    tag: Optional[str] = Query(None, max_length=255, description="Tag name"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Search active candidate profiles

    Only approved, active profiles are returned, always as anonymized
    summary cards. Use `GET /profile/{id}` for the full view.
    """
    cards, total = await ProfileQueryService(db).search(
        query=q,
        location=location,
        experience=experience,
        tag=tag,
        skip=skip,
        limit=limit,
    )
    return ApiResponse(
        data=ProfileSearchResponse(items=cards, total=total, skip=skip, limit=limit)
    )
