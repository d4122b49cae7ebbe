"""Candidate profile lifecycle: creation, review, approval and anonymity"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import (
    AuthorizationException,
    ConflictException,
    InvalidStateTransitionException,
    NotFoundException,
    ValidationException,
)
from backend.app.core.logging import get_logger
from backend.app.models.candidate_profile import (
    AuditAction,
    CandidateProfile,
    ProcessingStatus,
    ProfileAuditEntry,
    ReviewStatus,
)
from backend.app.models.user import User, UserRole
from backend.app.repositories.candidate_profile_repository import CandidateProfileRepository
from backend.app.schemas.staging import StagingMetadata
from backend.app.services.profile_migration import MigrationWarning, StagingMigrator

logger = get_logger(__name__)

# States from which each admin action may start
APPROVABLE_STATES = (ReviewStatus.PENDING_REVIEW, ReviewStatus.APPROVED)
REJECTABLE_STATES = (ReviewStatus.PENDING_REVIEW, ReviewStatus.APPROVED)
EDITABLE_STATES = (ReviewStatus.DRAFT, ReviewStatus.PENDING_REVIEW, ReviewStatus.REJECTED)

# Fields a candidate may change on their own profile
EDITABLE_FIELDS = (
    "title",
    "summary",
    "experience",
    "location",
    "remote_preference",
    "availability",
    "salary_min",
    "salary_max",
    "salary_currency",
    "linkedin_url",
    "staging_metadata",
)


@dataclass
class ApprovalResult:
    """Outcome of an approval round"""
    profile: CandidateProfile
    migrated: Dict[str, int] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)
    warnings: List[MigrationWarning] = field(default_factory=list)


@dataclass
class AnonymityToggleResult:
    """Previous and new anonymity state after a toggle"""
    profile: CandidateProfile
    previous: bool
    current: bool


class ProfileLifecycleService:
    """
    Service owning every state transition of a candidate profile

    States: draft -> pending_review -> approved | rejected. Approval runs the
    staging migration and activates the profile; rejection deactivates it and
    keeps staging data so the candidate can submit again. Anonymity can only
    be toggled by the owning candidate on an active profile.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize lifecycle service

        Args:
            session: Database session; the service owns its transactions
        """
        self.session = session
        self.profile_repo = CandidateProfileRepository(session)
        self.migrator = StagingMigrator(session)

    async def get_profile(self, profile_id: UUID) -> CandidateProfile:
        """
        Get profile by ID

        Raises:
            NotFoundException: If profile not found
        """
        profile = await self.profile_repo.get_by_id(profile_id)
        if not profile:
            raise NotFoundException(f"Candidate profile not found: {profile_id}")
        return profile

    async def _get_for_update(self, profile_id: UUID) -> CandidateProfile:
        profile = await self.profile_repo.get_by_id(profile_id, for_update=True)
        if not profile:
            raise NotFoundException(f"Candidate profile not found: {profile_id}")
        return profile

    @staticmethod
    def _require_admin(actor: User) -> None:
        if actor.role != UserRole.ADMIN:
            raise AuthorizationException("Admin role required")

    async def _abort(self, exc: Exception) -> None:
        # Release the row lock; nothing was mutated
        await self.session.rollback()
        raise exc

    async def create_profile(
        self,
        owner: User,
        staging_metadata: StagingMetadata,
        title: Optional[str] = None,
        summary: Optional[str] = None,
        experience: Optional[str] = None,
        location: Optional[str] = None,
        remote_preference: Optional[str] = None,
        availability: Optional[str] = None,
        salary_min: Optional[Decimal] = None,
        salary_max: Optional[Decimal] = None,
        salary_currency: Optional[str] = None,
        linkedin_url: Optional[str] = None
    ) -> CandidateProfile:
        """
        Create a draft profile for a candidate

        Args:
            owner: Candidate creating the profile
            staging_metadata: Self-reported data awaiting approval
            title..linkedin_url: Descriptive fields

        Returns:
            Created draft profile

        Raises:
            AuthorizationException: If the owner is not a candidate
            ConflictException: If the owner already has a profile
            ValidationException: If the salary range is inverted
        """
        if owner.role != UserRole.CANDIDATE:
            raise AuthorizationException("Only candidates can create a profile")
        if salary_min is not None and salary_max is not None and salary_min > salary_max:
            raise ValidationException("salary_min cannot exceed salary_max")

        if await self.profile_repo.get_by_user_id(owner.id):
            raise ConflictException("A profile already exists for this user")

        profile_data = {
            "user_id": owner.id,
            "title": title,
            "summary": summary,
            "experience": experience,
            "location": location,
            "remote_preference": remote_preference,
            "availability": availability,
            "salary_min": salary_min,
            "salary_max": salary_max,
            "salary_currency": (salary_currency or settings.DEFAULT_SALARY_CURRENCY).upper(),
            "linkedin_url": linkedin_url,
            "staging_metadata": staging_metadata.to_document(),
            "is_active": False,
            "profile_completed": False,
            "is_anonymized": True,
            "review_status": ReviewStatus.DRAFT,
            "processing_status": ProcessingStatus.NOT_STARTED,
            "completed_steps": [],
        }

        try:
            profile = await self.profile_repo.create(profile_data)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictException("A profile already exists for this user")

        logger.info(
            f"Created draft profile {profile.id} for user {owner.id}",
            extra={"profile_id": str(profile.id), "user_id": str(owner.id)},
        )
        return profile

    async def update_profile(
        self,
        profile_id: UUID,
        caller: User,
        changes: Dict[str, Any]
    ) -> CandidateProfile:
        """
        Apply a candidate's partial edit to their own profile

        Only allowed before approval. Replacing the staging metadata clears
        ``completed_steps`` so the next approval migrates the new document.

        Args:
            profile_id: Profile to edit
            caller: Acting user, must own the profile
            changes: Field name to new value; ``staging_metadata`` is a StagingMetadata

        Returns:
            Updated profile

        Raises:
            ValidationException: If a field is not editable or the salary range is inverted
            NotFoundException: If profile not found
            AuthorizationException: If the caller does not own the profile
            InvalidStateTransitionException: If the profile is approved
        """
        unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationException("Fields cannot be edited", details={"fields": unknown})

        profile = await self._get_for_update(profile_id)
        if profile.user_id != caller.id:
            await self._abort(AuthorizationException("You do not own this profile"))
        if profile.review_status not in EDITABLE_STATES:
            await self._abort(
                InvalidStateTransitionException(
                    f"Profile in state {profile.review_status.value} cannot be edited",
                    details={"review_status": profile.review_status.value},
                )
            )

        salary_min = changes.get("salary_min", profile.salary_min)
        salary_max = changes.get("salary_max", profile.salary_max)
        if salary_min is not None and salary_max is not None and salary_min > salary_max:
            await self._abort(ValidationException("salary_min cannot exceed salary_max"))

        edited = []
        for name, value in changes.items():
            if name == "staging_metadata":
                if value is None:
                    continue
                profile.staging_metadata = value.to_document()
                profile.completed_steps = []
                profile.processing_status = ProcessingStatus.NOT_STARTED
            elif name == "salary_currency":
                profile.salary_currency = (value or settings.DEFAULT_SALARY_CURRENCY).upper()
            else:
                setattr(profile, name, value)
            edited.append(name)

        if not edited:
            await self.session.commit()
            return profile

        profile.last_self_edit_at = datetime.now(timezone.utc)
        profile.last_self_edit_fields = edited
        await self.profile_repo.add_audit_entry(
            profile.id,
            AuditAction.EDITED,
            actor_id=caller.id,
            details={"fields": edited, "review_status": profile.review_status.value},
        )
        await self.session.commit()

        logger.info(
            f"Profile {profile.id} edited by owner: {', '.join(edited)}",
            extra={"profile_id": str(profile.id), "user_id": str(caller.id)},
        )
        return profile

    async def submit_for_review(self, profile_id: UUID, caller: User) -> CandidateProfile:
        """
        Mark a profile complete and queue it for admin review

        Does not change ``is_active`` and never touches normalized tables.

        Raises:
            NotFoundException: If profile not found
            AuthorizationException: If the caller does not own the profile
            InvalidStateTransitionException: If the profile is already approved
        """
        profile = await self._get_for_update(profile_id)
        previous = profile.review_status
        if profile.user_id != caller.id:
            await self._abort(AuthorizationException("You do not own this profile"))

        if previous == ReviewStatus.APPROVED:
            await self._abort(
                InvalidStateTransitionException(
                    "Profile is already approved",
                    details={"review_status": previous.value},
                )
            )

        if previous == ReviewStatus.PENDING_REVIEW:
            # Already queued; nothing to write
            await self.session.commit()
            return profile

        profile.profile_completed = True
        profile.review_status = ReviewStatus.PENDING_REVIEW
        await self.profile_repo.add_audit_entry(
            profile.id,
            AuditAction.SUBMITTED,
            actor_id=caller.id,
            details={"previous_status": previous.value},
        )
        await self.session.commit()

        logger.info(
            f"Profile {profile.id} submitted for review",
            extra={"profile_id": str(profile.id), "user_id": str(caller.id)},
        )
        return profile

    async def approve(
        self,
        profile_id: UUID,
        admin: User,
        reason: Optional[str] = None
    ) -> ApprovalResult:
        """
        Approve a profile, migrating its staging data and activating it

        Re-approving an approved profile is allowed and only migrates the
        categories not yet recorded in ``completed_steps``. Categories that
        cannot be migrated produce audit warnings instead of failing the call.

        Args:
            profile_id: Profile to approve
            admin: Acting admin
            reason: Optional free-text reason

        Returns:
            Approval result with per-category counts and warnings

        Raises:
            AuthorizationException: If the actor is not an admin
            NotFoundException: If profile not found
            InvalidStateTransitionException: If the profile is draft or rejected
        """
        self._require_admin(admin)
        # Migration rounds commit and may roll back, expiring loaded instances
        admin_id = admin.id

        profile = await self._get_for_update(profile_id)
        status = profile.review_status
        if status not in APPROVABLE_STATES:
            await self._abort(
                InvalidStateTransitionException(
                    f"Profile in state {status.value} cannot be approved",
                    details={"review_status": status.value},
                )
            )

        if profile.processing_status != ProcessingStatus.COMPLETED:
            profile.processing_status = ProcessingStatus.IN_PROGRESS
        await self.session.commit()

        report = await self.migrator.migrate(profile.id, admin_id=admin_id)

        profile = await self._get_for_update(profile_id)
        status = profile.review_status
        if status not in APPROVABLE_STATES:
            # Rejected while the migration ran; the rejection stands
            logger.warning(
                f"Profile {profile.id} left {status.value} during approval",
                extra={"profile_id": str(profile.id), "admin_id": str(admin_id)},
            )
            await self._abort(
                InvalidStateTransitionException(
                    f"Profile in state {status.value} cannot be approved",
                    details={"review_status": status.value},
                )
            )

        profile.is_active = True
        profile.profile_completed = True
        profile.review_status = ReviewStatus.APPROVED
        profile.rejection_reason = None
        profile.processing_status = ProcessingStatus.COMPLETED
        profile.last_processed_at = datetime.now(timezone.utc)
        profile.processed_by = admin_id

        for warning in report.warnings:
            await self.profile_repo.add_audit_entry(
                profile.id,
                AuditAction.MIGRATION_WARNING,
                actor_id=admin_id,
                reason=warning.message,
                details=warning.to_details(),
            )
        await self.profile_repo.add_audit_entry(
            profile.id,
            AuditAction.APPROVED,
            actor_id=admin_id,
            reason=reason,
            details={
                "migrated": report.migrated,
                "skipped": report.skipped,
                "completed_steps": report.completed_steps,
                "warnings": len(report.warnings),
            },
        )
        await self.session.commit()

        logger.info(
            f"Profile {profile.id} approved with {len(report.warnings)} warnings",
            extra={"profile_id": str(profile.id), "admin_id": str(admin_id)},
        )
        return ApprovalResult(
            profile=profile,
            migrated=report.migrated,
            skipped=report.skipped,
            warnings=report.warnings,
        )

    async def reject(self, profile_id: UUID, admin: User, reason: str) -> CandidateProfile:
        """
        Reject a profile

        Leaves the profile inactive and keeps staging data and any migrated
        rows untouched so the candidate can submit again.

        Raises:
            ValidationException: If no reason is given
            AuthorizationException: If the actor is not an admin
            NotFoundException: If profile not found
            InvalidStateTransitionException: If the profile is draft or rejected
        """
        self._require_admin(admin)
        if not reason or not reason.strip():
            raise ValidationException("A rejection reason is required")

        profile = await self._get_for_update(profile_id)
        previous = profile.review_status
        if previous not in REJECTABLE_STATES:
            await self._abort(
                InvalidStateTransitionException(
                    f"Profile in state {previous.value} cannot be rejected",
                    details={"review_status": previous.value},
                )
            )

        profile.is_active = False
        profile.review_status = ReviewStatus.REJECTED
        profile.rejection_reason = reason.strip()
        await self.profile_repo.add_audit_entry(
            profile.id,
            AuditAction.REJECTED,
            actor_id=admin.id,
            reason=reason.strip(),
            details={"previous_status": previous.value},
        )
        await self.session.commit()

        logger.info(
            f"Profile {profile.id} rejected",
            extra={"profile_id": str(profile.id), "admin_id": str(admin.id)},
        )
        return profile

    async def toggle_anonymity(self, profile_id: UUID, caller: User) -> AnonymityToggleResult:
        """
        Flip a profile's anonymity flag

        Raises:
            NotFoundException: If profile not found
            AuthorizationException: If the caller is not the owning candidate
            InvalidStateTransitionException: If the profile is not active
        """
        profile = await self._get_for_update(profile_id)
        if profile.user_id != caller.id:
            await self._abort(AuthorizationException("You do not own this profile"))
        if caller.role != UserRole.CANDIDATE:
            await self._abort(
                AuthorizationException("Only candidates can change profile anonymity")
            )
        if not profile.is_active:
            await self._abort(
                InvalidStateTransitionException("Only active profiles can change anonymity")
            )

        previous = profile.is_anonymized
        now = datetime.now(timezone.utc)
        profile.is_anonymized = not previous
        profile.anonymity_toggle_count = (profile.anonymity_toggle_count or 0) + 1
        profile.last_anonymity_toggle_at = now
        await self.profile_repo.add_audit_entry(
            profile.id,
            AuditAction.ANONYMITY_TOGGLED,
            actor_id=caller.id,
            details={
                "previous": previous,
                "current": profile.is_anonymized,
                "toggle_count": profile.anonymity_toggle_count,
            },
        )
        await self.session.commit()

        logger.info(
            f"Profile {profile.id} anonymity {previous} -> {profile.is_anonymized}",
            extra={"profile_id": str(profile.id), "user_id": str(caller.id)},
        )
        return AnonymityToggleResult(profile=profile, previous=previous, current=profile.is_anonymized)

    async def list_audit_entries(self, profile_id: UUID) -> List[ProfileAuditEntry]:
        """
        Get a profile's audit trail

        Raises:
            NotFoundException: If profile not found
        """
        profile = await self.get_profile(profile_id)
        return await self.profile_repo.list_audit_entries(profile.id)

    async def child_counts(self, profile_id: UUID) -> Dict[str, Any]:
        """Row counts in every normalized child table of a profile"""
        return await self.profile_repo.count_children(profile_id)
