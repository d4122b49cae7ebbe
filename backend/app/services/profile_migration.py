"""Approval-triggered migration of staging metadata into normalized tables"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import NotFoundException
from backend.app.core.logging import get_logger
from backend.app.models.candidate_profile import CandidateProfile
from backend.app.models.profile_entities import (
    BoardCommittee,
    BoardExperienceType,
    CandidateTag,
    DealExperience,
    Education,
    WorkExperience,
)
from backend.app.repositories.candidate_profile_repository import CandidateProfileRepository
from backend.app.schemas.staging import ParsedCategory, StagingCategory, parse_category

logger = get_logger(__name__)


@dataclass
class MigrationWarning:
    """A category that could not be migrated, or migrated with dropped entries"""
    category: StagingCategory
    message: str
    dropped: int = 0

    def to_details(self) -> Dict[str, Any]:
        return {"category": self.category.value, "message": self.message, "dropped": self.dropped}


@dataclass
class MigrationReport:
    """Per-round outcome of a staging migration"""
    migrated: Dict[str, int] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)
    warnings: List[MigrationWarning] = field(default_factory=list)
    completed_steps: List[str] = field(default_factory=list)


class StagingMigrator:
    """
    Moves each staging category into its normalized table

    Categories are handled one at a time in a fixed order. Each category's
    rows are written and its name appended to ``completed_steps`` in one
    transaction, so the marker list always names exactly the categories
    that were durably committed. Marked categories are never touched again.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.profile_repo = CandidateProfileRepository(session)
        self._handlers = {
            StagingCategory.TAGS: self._migrate_tags,
            StagingCategory.WORK_EXPERIENCES: self._migrate_work_experiences,
            StagingCategory.EDUCATION: self._migrate_education,
            StagingCategory.DEAL_EXPERIENCES: self._migrate_deal_experiences,
            StagingCategory.BOARD_COMMITTEES: self._migrate_board_committees,
            StagingCategory.BOARD_EXPERIENCE_TYPES: self._migrate_board_experience_types,
        }

    async def migrate(self, profile_id: UUID, admin_id: Optional[UUID] = None) -> MigrationReport:
        """
        Run one migration round for a profile

        Args:
            profile_id: Profile to migrate
            admin_id: Admin triggering the round

        Returns:
            Migration report; failures are reported as warnings, never raised
        """
        report = MigrationReport()

        for category in StagingCategory:
            profile = await self._lock_profile(profile_id)

            if category.value in (profile.completed_steps or []):
                report.skipped.append(category.value)
                continue

            parsed = parse_category(profile.staging_metadata, category)
            if not parsed.present:
                await self.session.commit()
                report.warnings.append(
                    MigrationWarning(category, "Category absent from staging metadata")
                )
                continue
            if parsed.malformed:
                await self.session.commit()
                report.warnings.append(
                    MigrationWarning(category, "Category is malformed in staging metadata")
                )
                continue

            try:
                count = await self._handlers[category](profile.id, parsed)
                profile.completed_steps = [*(profile.completed_steps or []), category.value]
                profile.last_processed_at = datetime.now(timezone.utc)
                if admin_id is not None:
                    profile.processed_by = admin_id
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.error(
                    f"Failed to migrate {category.value} for profile {profile_id}: {type(e).__name__}",
                    extra={"profile_id": str(profile_id), "category": category.value},
                )
                report.warnings.append(
                    MigrationWarning(category, "Category could not be stored; it will be retried on re-approval")
                )
                continue

            report.migrated[category.value] = count
            if parsed.dropped:
                report.warnings.append(
                    MigrationWarning(
                        category,
                        f"{parsed.dropped} invalid entries were dropped",
                        dropped=parsed.dropped,
                    )
                )
            logger.info(
                f"Migrated {count} {category.value} rows for profile {profile_id}",
                extra={"profile_id": str(profile_id), "category": category.value},
            )

        profile = await self.profile_repo.get_by_id(profile_id)
        report.completed_steps = list(profile.completed_steps or [])
        return report

    async def _lock_profile(self, profile_id: UUID) -> CandidateProfile:
        profile = await self.profile_repo.get_by_id(profile_id, for_update=True)
        if not profile:
            raise NotFoundException(f"Candidate profile not found: {profile_id}")
        return profile

    async def _migrate_tags(self, candidate_id: UUID, parsed: ParsedCategory) -> int:
        tag_ids = []
        for entry in parsed.entries:
            tag = await self.profile_repo.get_or_create_tag(entry.name, entry.category)
            if tag.id not in tag_ids:
                tag_ids.append(tag.id)
        rows = [{"tag_id": tag_id} for tag_id in tag_ids]
        return await self.profile_repo.replace_children(CandidateTag, candidate_id, rows)

    async def _migrate_work_experiences(self, candidate_id: UUID, parsed: ParsedCategory) -> int:
        rows = [
            {
                "company_name": entry.company_name,
                "position": entry.title,
                "location": entry.location,
                "start_date": entry.start_date,
                "end_date": entry.end_date,
                "is_current": entry.is_current,
                "description": entry.description,
                "is_board_position": entry.is_board_position,
                "company_type": entry.company_type,
                "order": index,
            }
            for index, entry in enumerate(parsed.entries)
        ]
        return await self.profile_repo.replace_children(WorkExperience, candidate_id, rows)

    async def _migrate_education(self, candidate_id: UUID, parsed: ParsedCategory) -> int:
        rows = [
            {
                "institution": entry.institution,
                "degree": entry.degree,
                "field_of_study": entry.field_of_study,
                "graduation_date": entry.graduation_date,
                "order": index,
            }
            for index, entry in enumerate(parsed.entries)
        ]
        return await self.profile_repo.replace_children(Education, candidate_id, rows)

    async def _migrate_deal_experiences(self, candidate_id: UUID, parsed: ParsedCategory) -> int:
        rows = [
            {
                "deal_type": entry.deal_type,
                "deal_value": entry.deal_value,
                "deal_currency": (entry.deal_currency or settings.DEFAULT_DEAL_CURRENCY).upper(),
                "company_name": entry.company_name,
                "role": entry.role,
                "year": entry.year,
                "description": entry.description,
                "sector": entry.sector,
            }
            for entry in parsed.entries
        ]
        return await self.profile_repo.replace_children(DealExperience, candidate_id, rows)

    async def _migrate_board_committees(self, candidate_id: UUID, parsed: ParsedCategory) -> int:
        rows = [{"committee_type": label} for label in parsed.entries]
        return await self.profile_repo.replace_children(BoardCommittee, candidate_id, rows)

    async def _migrate_board_experience_types(self, candidate_id: UUID, parsed: ParsedCategory) -> int:
        rows = [{"experience_type": label} for label in parsed.entries]
        return await self.profile_repo.replace_children(BoardExperienceType, candidate_id, rows)
