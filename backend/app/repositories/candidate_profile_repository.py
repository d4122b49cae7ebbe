"""Candidate profile repository for database operations"""

from typing import Any, Dict, List, Optional, Sequence, Type, Union
from uuid import UUID
from sqlalchemy import delete, select, or_, and_, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import Base
from backend.app.models.candidate_profile import (
    AuditAction,
    CandidateProfile,
    ProfileAuditEntry,
)
from backend.app.models.profile_entities import (
    BoardCommittee,
    BoardExperienceType,
    CandidateTag,
    DealExperience,
    Education,
    Tag,
    TagCategory,
    WorkExperience,
)
from backend.app.models.user import User
from backend.app.core.logging import get_logger

logger = get_logger(__name__)

# Child tables owned by a profile, keyed by the name used in counts
CHILD_MODELS: Dict[str, Type[Base]] = {
    "tags": CandidateTag,
    "work_experiences": WorkExperience,
    "education": Education,
    "deal_experiences": DealExperience,
    "board_committees": BoardCommittee,
    "board_experience_types": BoardExperienceType,
}


def _as_uuid(value: Union[str, UUID]) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class CandidateProfileRepository:
    """Repository for candidate profile database operations"""

    def __init__(self, session: AsyncSession):
        """
        Initialize repository

        Args:
            session: Database session
        """
        self.session = session

    async def create(self, profile_data: Dict[str, Any]) -> CandidateProfile:
        """
        Create a new candidate profile

        Args:
            profile_data: Dictionary with profile column values

        Returns:
            Created profile (flushed, not committed)
        """
        profile = CandidateProfile(**profile_data)
        self.session.add(profile)
        await self.session.flush()

        logger.info(f"Created candidate profile: {profile.id}")
        return profile

    async def get_by_id(
        self,
        profile_id: Union[str, UUID],
        for_update: bool = False
    ) -> Optional[CandidateProfile]:
        """
        Get profile by ID, always refreshing the identity-mapped instance

        Args:
            profile_id: Profile UUID
            for_update: Lock the row until the current transaction ends

        Returns:
            Profile if found, None otherwise
        """
        profile_uuid = _as_uuid(profile_id)
        if profile_uuid is None:
            return None

        stmt = (
            select(CandidateProfile)
            .where(CandidateProfile.id == profile_uuid)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        profile = result.scalar_one_or_none()

        if not profile:
            logger.debug(f"Candidate profile not found: {profile_id}")

        return profile

    async def get_by_user_id(self, user_id: UUID) -> Optional[CandidateProfile]:
        """Get the profile owned by a user"""
        result = await self.session.execute(
            select(CandidateProfile).where(CandidateProfile.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_owner(self, profile: CandidateProfile) -> Optional[User]:
        """Get the user owning a profile"""
        result = await self.session.execute(
            select(User).where(User.id == profile.user_id)
        )
        return result.scalar_one_or_none()

    async def add_audit_entry(
        self,
        profile_id: UUID,
        action: AuditAction,
        actor_id: Optional[UUID] = None,
        reason: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> ProfileAuditEntry:
        """
        Append an entry to a profile's audit trail

        Args:
            profile_id: Profile UUID
            action: Audited action
            actor_id: User performing the action
            reason: Free-text reason
            details: Structured context

        Returns:
            Created audit entry (flushed, not committed)
        """
        entry = ProfileAuditEntry(
            profile_id=profile_id,
            actor_id=actor_id,
            action=action,
            reason=reason,
            details=details,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_audit_entries(self, profile_id: UUID) -> List[ProfileAuditEntry]:
        """List a profile's audit trail, oldest first"""
        result = await self.session.execute(
            select(ProfileAuditEntry)
            .where(ProfileAuditEntry.profile_id == profile_id)
            .order_by(ProfileAuditEntry.id)
        )
        return list(result.scalars().all())

    async def replace_children(
        self,
        model: Type[Base],
        candidate_id: UUID,
        rows: Sequence[Dict[str, Any]]
    ) -> int:
        """
        Replace every row of one child table for a profile

        Args:
            model: Child model class
            candidate_id: Owning profile UUID
            rows: Column values for the new rows (candidate_id is added)

        Returns:
            Number of rows inserted
        """
        await self.session.execute(
            delete(model).where(model.candidate_id == candidate_id)
        )
        self.session.add_all([model(candidate_id=candidate_id, **row) for row in rows])
        await self.session.flush()

        logger.debug(f"Replaced {model.__tablename__} rows for {candidate_id}: {len(rows)}")
        return len(rows)

    async def get_or_create_tag(self, name: str, category: TagCategory) -> Tag:
        """
        Get a tag from the shared vocabulary, creating it when missing

        Args:
            name: Tag name
            category: Tag category

        Returns:
            Existing or newly created tag
        """
        result = await self.session.execute(
            select(Tag).where(Tag.name == name, Tag.category == category)
        )
        tag = result.scalar_one_or_none()
        if tag:
            return tag

        tag = Tag(name=name, category=category, is_active=True)
        self.session.add(tag)
        await self.session.flush()

        logger.info(f"Created tag: {name} ({category.value})")
        return tag

    async def count_children(self, candidate_id: UUID) -> Dict[str, int]:
        """
        Count rows in every child table for a profile

        Args:
            candidate_id: Profile UUID

        Returns:
            Mapping of child table name to row count
        """
        counts = {}
        for name, model in CHILD_MODELS.items():
            result = await self.session.execute(
                select(func.count()).select_from(model).where(model.candidate_id == candidate_id)
            )
            counts[name] = result.scalar() or 0
        return counts

    async def list_children(self, model: Type[Base], candidate_id: UUID) -> List[Any]:
        """List one child table's rows for a profile"""
        stmt = select(model).where(model.candidate_id == candidate_id)
        if hasattr(model, "order"):
            stmt = stmt.order_by(model.order)
        elif hasattr(model, "year"):
            stmt = stmt.order_by(model.year.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_tags(self, candidate_id: UUID) -> List[Tag]:
        """List the tags attached to a profile"""
        result = await self.session.execute(
            select(Tag)
            .join(CandidateTag, CandidateTag.tag_id == Tag.id)
            .where(CandidateTag.candidate_id == candidate_id)
            .order_by(Tag.category, Tag.name)
        )
        return list(result.scalars().all())

    def _search_conditions(
        self,
        query: Optional[str],
        location: Optional[str],
        experience: Optional[str],
        tag: Optional[str]
    ) -> list:
        # Only approved, active profiles are ever searchable
        conditions = [CandidateProfile.is_active.is_(True)]

        if query:
            search_pattern = f"%{query}%"
            conditions.append(
                or_(
                    CandidateProfile.title.ilike(search_pattern),
                    CandidateProfile.summary.ilike(search_pattern)
                )
            )

        if location:
            conditions.append(CandidateProfile.location.ilike(f"%{location}%"))

        if experience:
            conditions.append(CandidateProfile.experience == experience)

        if tag:
            tagged = (
                select(CandidateTag.candidate_id)
                .join(Tag, Tag.id == CandidateTag.tag_id)
                .where(func.lower(Tag.name) == tag.lower())
            )
            conditions.append(CandidateProfile.id.in_(tagged))

        return conditions

    async def search(
        self,
        query: Optional[str] = None,
        location: Optional[str] = None,
        experience: Optional[str] = None,
        tag: Optional[str] = None,
        skip: int = 0,
        limit: int = 20
    ) -> List[CandidateProfile]:
        """
        Search active profiles with filters

        Args:
            query: Text search query (searches title and summary)
            location: Location substring
            experience: Exact experience band
            tag: Tag name the profile must carry
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            List of matching profiles
        """
        conditions = self._search_conditions(query, location, experience, tag)
        stmt = (
            select(CandidateProfile)
            .where(and_(*conditions))
            .order_by(CandidateProfile.updated_at.desc(), CandidateProfile.id)
            .offset(skip)
            .limit(limit)
        )

        result = await self.session.execute(stmt)
        profiles = result.scalars().all()

        logger.info(f"Search returned {len(profiles)} profiles")
        return list(profiles)

    async def count_search(
        self,
        query: Optional[str] = None,
        location: Optional[str] = None,
        experience: Optional[str] = None,
        tag: Optional[str] = None
    ) -> int:
        """Count active profiles matching the search filters"""
        conditions = self._search_conditions(query, location, experience, tag)
        result = await self.session.execute(
            select(func.count()).select_from(CandidateProfile).where(and_(*conditions))
        )
        return result.scalar() or 0
