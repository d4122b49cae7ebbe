"""Candidate profile API endpoints"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.exceptions import NotFoundException
from backend.app.core.security import (
    get_current_user,
    require_candidate,
    require_company,
    require_moderator,
)
from backend.app.models.user import User
from backend.app.repositories.candidate_profile_repository import CandidateProfileRepository
from backend.app.schemas.envelope import ApiResponse
from backend.app.schemas.profile import (
    AnonymityToggleResponse,
    ApprovalResponse,
    AuditEntryResponse,
    MigrationWarningResponse,
    ProfileCreateRequest,
    ProfileStateResponse,
    ProfileUpdateRequest,
    ProfileView,
    RejectRequest,
    ReviewActionRequest,
    UnlockResponse,
)
from backend.app.services.profile_lifecycle_service import ProfileLifecycleService
from backend.app.services.profile_query_service import ProfileQueryService
from backend.app.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def get_lifecycle_service(db: AsyncSession = Depends(get_db)) -> ProfileLifecycleService:
    """Dependency to get profile lifecycle service"""
    return ProfileLifecycleService(db)


def get_query_service(db: AsyncSession = Depends(get_db)) -> ProfileQueryService:
    """Dependency to get profile query service"""
    return ProfileQueryService(db)


@router.post(
    "",
    response_model=ApiResponse[ProfileStateResponse],
    status_code=status.HTTP_201_CREATED
)
async def create_profile(
    request: ProfileCreateRequest,
    current_user: User = Depends(require_candidate),
    lifecycle: ProfileLifecycleService = Depends(get_lifecycle_service)
):
    """
    Create a draft candidate profile

    The profile starts inactive, incomplete and anonymized. Work history,
    education, deals, committees and tags are kept in `staging_metadata`
    until an admin approves the profile.

    **Required role:** candidate

    ## Error Responses

    - **400 Bad Request**: Invalid staging metadata or salary range
    - **409 Conflict**: The candidate already has a profile
    """
    profile = await lifecycle.create_profile(
        owner=current_user,
        staging_metadata=request.staging_metadata,
        title=request.title,
        summary=request.summary,
        experience=request.experience,
        location=request.location,
        remote_preference=request.remote_preference,
        availability=request.availability,
        salary_min=request.salary_min,
        salary_max=request.salary_max,
        salary_currency=request.salary_currency,
        linkedin_url=request.linkedin_url,
    )
    return ApiResponse(
        data=ProfileStateResponse.model_validate(profile),
        message="Profile created"
    )


@router.get("/me", response_model=ApiResponse[ProfileStateResponse])
async def get_my_profile(
    current_user: User = Depends(require_candidate),
    db: AsyncSession = Depends(get_db)
):
    """Get the lifecycle state of the caller's own profile"""
    profile = await CandidateProfileRepository(db).get_by_user_id(current_user.id)
    if not profile:
        raise NotFoundException("You have not created a profile yet")
    return ApiResponse(data=ProfileStateResponse.model_validate(profile))


@router.patch("/me", response_model=ApiResponse[ProfileStateResponse])
async def update_my_profile(
    request: ProfileUpdateRequest,
    current_user: User = Depends(require_candidate),
    db: AsyncSession = Depends(get_db),
    lifecycle: ProfileLifecycleService = Depends(get_lifecycle_service)
):
    """
    Edit the caller's own profile

    Only the fields present in the body change. Sending `staging_metadata`
    replaces the whole staging document and resets migration progress.
    Approved profiles cannot be edited.

    **Required role:** candidate

    ## Error Responses

    - **400 Bad Request**: Unknown field, invalid staging metadata or salary range
    - **404 Not Found**: The candidate has no profile
    - **409 Conflict**: The profile is approved
    """
    profile = await CandidateProfileRepository(db).get_by_user_id(current_user.id)
    if not profile:
        raise NotFoundException("You have not created a profile yet")

    profile = await lifecycle.update_profile(profile.id, current_user, request.changes())
    return ApiResponse(
        data=ProfileStateResponse.model_validate(profile),
        message="Profile updated"
    )


@router.get("/{profile_id}", response_model=ApiResponse[ProfileView])
async def get_profile(
    profile_id: UUID,
    current_user: User = Depends(get_current_user),
    query_service: ProfileQueryService = Depends(get_query_service)
):
    """
    Get a candidate profile

    Owners and admins see everything. Other users only see active profiles;
    the identity block (name, email, LinkedIn) is redacted while the profile
    is anonymized and has not been unlocked by the viewer.
    """
    view = await query_service.get_view(profile_id, current_user)
    return ApiResponse(data=view)


@router.post("/{profile_id}/submit", response_model=ApiResponse[ProfileStateResponse])
async def submit_profile(
    profile_id: UUID,
    current_user: User = Depends(get_current_user),
    lifecycle: ProfileLifecycleService = Depends(get_lifecycle_service)
):
    """
    Submit a profile for admin review

    Marks the profile complete; it stays inactive until approved.

    ## Error Responses

    - **403 Forbidden**: Caller does not own the profile
    - **404 Not Found**: Profile not found
    - **409 Conflict**: Profile already approved
    """
    profile = await lifecycle.submit_for_review(profile_id, current_user)
    return ApiResponse(
        data=ProfileStateResponse.model_validate(profile),
        message="Profile submitted for review"
    )


@router.post("/{profile_id}/approve", response_model=ApiResponse[ApprovalResponse])
async def approve_profile(
    profile_id: UUID,
    request: Optional[ReviewActionRequest] = None,
    current_user: User = Depends(require_moderator),
    lifecycle: ProfileLifecycleService = Depends(get_lifecycle_service)
):
    """
    Approve a profile

    Migrates each staging category into the normalized tables, then
    activates the profile. Safe to call again: categories already migrated
    are skipped. Categories that cannot be migrated are reported in
    `warnings` and recorded in the audit trail.

    **Required role:** admin with `profiles:moderate`

    ## Error Responses

    - **404 Not Found**: Profile not found
    - **409 Conflict**: Profile is still a draft or was rejected
    """
    result = await lifecycle.approve(
        profile_id,
        current_user,
        reason=request.reason if request else None
    )
    counts = await lifecycle.child_counts(result.profile.id)

    response = ApprovalResponse(
        profile=ProfileStateResponse.model_validate(result.profile),
        migrated=result.migrated,
        skipped=result.skipped,
        warnings=[
            MigrationWarningResponse(**warning.to_details()) for warning in result.warnings
        ],
        child_counts=counts,
    )
    message = "Profile approved"
    if result.warnings:
        message = f"Profile approved with {len(result.warnings)} warnings"
    return ApiResponse(data=response, message=message)


@router.post("/{profile_id}/reject", response_model=ApiResponse[ProfileStateResponse])
async def reject_profile(
    profile_id: UUID,
    request: RejectRequest,
    current_user: User = Depends(require_moderator),
    lifecycle: ProfileLifecycleService = Depends(get_lifecycle_service)
):
    """
    Reject a profile

    The profile becomes inactive with the reason recorded; the candidate can
    submit it again later.

    **Required role:** admin with `profiles:moderate`
    """
    profile = await lifecycle.reject(profile_id, current_user, request.reason)
    return ApiResponse(
        data=ProfileStateResponse.model_validate(profile),
        message="Profile rejected"
    )


@router.post("/{profile_id}/toggle-anonymity", response_model=ApiResponse[AnonymityToggleResponse])
async def toggle_anonymity(
    profile_id: UUID,
    current_user: User = Depends(get_current_user),
    lifecycle: ProfileLifecycleService = Depends(get_lifecycle_service)
):
    """
    Toggle whether the candidate's identity is hidden

    Only the owning candidate can toggle, and only on an active profile.
    """
    result = await lifecycle.toggle_anonymity(profile_id, current_user)
    return ApiResponse(
        data=AnonymityToggleResponse(
            profile_id=result.profile.id,
            previous=result.previous,
            current=result.current,
            toggle_count=result.profile.anonymity_toggle_count,
            toggled_at=result.profile.last_anonymity_toggle_at,
        )
    )


@router.post("/{profile_id}/unlock", response_model=ApiResponse[UnlockResponse])
async def unlock_profile(
    profile_id: UUID,
    current_user: User = Depends(require_company),
    query_service: ProfileQueryService = Depends(get_query_service)
):
    """
    Spend credits to reveal a profile's identity

    Charged once per company and profile; unlocking again is free.

    **Required role:** company or admin

    ## Error Responses

    - **400 Bad Request**: Insufficient credits
    - **404 Not Found**: Profile not found or not active
    """
    result, view = await query_service.unlock(profile_id, current_user)
    return ApiResponse(
        data=UnlockResponse(
            charged=result.charged,
            already_unlocked=result.already_unlocked,
            balance=result.balance,
            profile=view,
        ),
        message="Profile already unlocked" if result.already_unlocked else "Profile unlocked"
    )


@router.get("/{profile_id}/audit", response_model=ApiResponse[List[AuditEntryResponse]])
async def get_audit_trail(
    profile_id: UUID,
    current_user: User = Depends(require_moderator),
    lifecycle: ProfileLifecycleService = Depends(get_lifecycle_service)
):
    """
    Get a profile's administrative audit trail, oldest first

    **Required role:** admin with `profiles:moderate`
    """
    entries = await lifecycle.list_audit_entries(profile_id)
    return ApiResponse(data=[AuditEntryResponse.model_validate(entry) for entry in entries])
