"""Read side of candidate profiles: redacted views, unlocks and search"""

from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import AuthorizationException, NotFoundException
from backend.app.core.logging import get_logger
from backend.app.models.candidate_profile import CandidateProfile
from backend.app.models.credit import CreditReason
from backend.app.models.profile_entities import (
    BoardCommittee,
    BoardExperienceType,
    DealExperience,
    Education,
    WorkExperience,
)
from backend.app.models.user import User, UserRole
from backend.app.repositories.candidate_profile_repository import CandidateProfileRepository
from backend.app.schemas.profile import (
    DealExperienceResponse,
    EducationResponse,
    IdentityBlock,
    ProfileCard,
    ProfileView,
    TagResponse,
    WorkExperienceResponse,
)
from backend.app.services.credit_ledger import CreditLedger, DeductionResult

logger = get_logger(__name__)

# Roles allowed to pay for an unlock
UNLOCK_ROLES = (UserRole.COMPANY, UserRole.ADMIN)


class ProfileQueryService:
    """Service building viewer-specific profile views"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.profile_repo = CandidateProfileRepository(session)
        self.ledger = CreditLedger(session)

    async def _get_visible(self, profile_id: UUID, viewer: User) -> CandidateProfile:
        profile = await self.profile_repo.get_by_id(profile_id)
        if not profile:
            raise NotFoundException(f"Candidate profile not found: {profile_id}")

        privileged = viewer.role == UserRole.ADMIN or profile.user_id == viewer.id
        if not privileged and not profile.is_active:
            # Inactive profiles do not exist for anyone but the owner and admins
            raise NotFoundException(f"Candidate profile not found: {profile_id}")
        return profile

    async def identity_revealed(
        self,
        profile: CandidateProfile,
        viewer_id: UUID,
        viewer_role: UserRole
    ) -> bool:
        """
        Decide whether the viewer may see who the candidate is

        Owners and admins always can; anyone else only when the profile is
        not anonymized or the viewer has unlocked it.
        """
        if viewer_role == UserRole.ADMIN or profile.user_id == viewer_id:
            return True
        if not profile.is_anonymized:
            return True
        return await self.ledger.is_unlocked(viewer_id, profile.id)

    async def get_view(self, profile_id: UUID, viewer: User) -> ProfileView:
        """
        Get the profile as the viewer is allowed to see it

        Raises:
            NotFoundException: If the profile is missing or hidden from the viewer
        """
        profile = await self._get_visible(profile_id, viewer)
        return await self._build_view(profile, viewer.id, viewer.role)

    async def _build_view(
        self,
        profile: CandidateProfile,
        viewer_id: UUID,
        viewer_role: UserRole
    ) -> ProfileView:
        revealed = await self.identity_revealed(profile, viewer_id, viewer_role)

        identity = None
        if revealed:
            owner = await self.profile_repo.get_owner(profile)
            identity = IdentityBlock(
                first_name=owner.first_name if owner else None,
                last_name=owner.last_name if owner else None,
                email=owner.email if owner else None,
                linkedin_url=profile.linkedin_url,
            )

        work = await self.profile_repo.list_children(WorkExperience, profile.id)
        education = await self.profile_repo.list_children(Education, profile.id)
        deals = await self.profile_repo.list_children(DealExperience, profile.id)
        committees = await self.profile_repo.list_children(BoardCommittee, profile.id)
        board_types = await self.profile_repo.list_children(BoardExperienceType, profile.id)
        tags = await self.profile_repo.list_tags(profile.id)

        return ProfileView(
            id=profile.id,
            title=profile.title,
            summary=profile.summary,
            experience=profile.experience,
            location=profile.location,
            remote_preference=profile.remote_preference,
            availability=profile.availability,
            salary_min=profile.salary_min,
            salary_max=profile.salary_max,
            salary_currency=profile.salary_currency,
            is_active=profile.is_active,
            is_anonymized=profile.is_anonymized,
            review_status=profile.review_status,
            identity_revealed=revealed,
            identity=identity,
            work_experiences=[WorkExperienceResponse.model_validate(row) for row in work],
            education=[EducationResponse.model_validate(row) for row in education],
            deal_experiences=[DealExperienceResponse.model_validate(row) for row in deals],
            board_committees=[row.committee_type for row in committees],
            board_experience_types=[row.experience_type for row in board_types],
            tags=[TagResponse.model_validate(tag) for tag in tags],
        )

    async def unlock(self, profile_id: UUID, viewer: User) -> Tuple[DeductionResult, ProfileView]:
        """
        Pay to reveal a profile's identity

        Charges ``PROFILE_UNLOCK_COST`` once per (viewer, profile); repeated
        unlocks succeed without a charge.

        Raises:
            AuthorizationException: If the viewer's role cannot unlock
            NotFoundException: If the profile is missing or not active
            InsufficientCreditsException: If the balance is too low
        """
        viewer_id, viewer_role = viewer.id, viewer.role
        if viewer_role not in UNLOCK_ROLES:
            raise AuthorizationException("Only company accounts can unlock profiles")

        profile = await self.profile_repo.get_by_id(profile_id)
        if not profile or not profile.is_active:
            raise NotFoundException(f"Candidate profile not found: {profile_id}")
        profile_uuid = profile.id

        result = await self.ledger.deduct(
            viewer_id,
            settings.PROFILE_UNLOCK_COST,
            profile_id=profile_uuid,
            reason=CreditReason.PROFILE_UNLOCK,
        )

        # The ledger may have rolled back; reload before reading attributes
        profile = await self.profile_repo.get_by_id(profile_uuid)
        view = await self._build_view(profile, viewer_id, viewer_role)

        logger.info(
            f"Profile {profile_uuid} unlock by {viewer_id}: charged {result.charged}",
            extra={"profile_id": str(profile_uuid), "user_id": str(viewer_id)},
        )
        return result, view

    async def search(
        self,
        query: Optional[str] = None,
        location: Optional[str] = None,
        experience: Optional[str] = None,
        tag: Optional[str] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[ProfileCard], int]:
        """
        Search active profiles

        Returns:
            Tuple of (anonymized summary cards, total matches)
        """
        profiles = await self.profile_repo.search(
            query=query,
            location=location,
            experience=experience,
            tag=tag,
            skip=skip,
            limit=limit,
        )
        total = await self.profile_repo.count_search(
            query=query,
            location=location,
            experience=experience,
            tag=tag,
        )
        return [ProfileCard.model_validate(profile) for profile in profiles], total
