"""Unit tests for the profile lifecycle service"""

import asyncio
import pytest
from decimal import Decimal
from sqlalchemy import delete, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from backend.app.core.exceptions import (
    AuthorizationException,
    ConflictException,
    InvalidStateTransitionException,
    NotFoundException,
    ValidationException,
)
from backend.app.models.candidate_profile import AuditAction, CandidateProfile, ProcessingStatus, ReviewStatus
from backend.app.models.profile_entities import WorkExperience
from backend.app.models.user import User, UserRole
from backend.app.repositories.candidate_profile_repository import CandidateProfileRepository
from backend.app.schemas.staging import StagingCategory, StagingMetadata
from backend.app.repositories.user_repository import UserRepository
from backend.app.services.profile_lifecycle_service import ApprovalResult, ProfileLifecycleService
from tests.factories import (
    SAMPLE_COUNTS,
    approved_profile,
    create_profile,
    create_raw_profile,
    create_user,
    sample_staging,
)

ALL_STEPS = [category.value for category in StagingCategory]
NO_ROWS = {name: 0 for name in SAMPLE_COUNTS}


class TestCreateProfile:
    """Tests for draft profile creation"""

    @pytest.mark.asyncio
    async def test_new_profile_starts_as_inactive_draft(self, db_session, candidate):
        profile = await create_profile(db_session, candidate, title="Non-Executive Director")

        assert profile.review_status == ReviewStatus.DRAFT
        assert profile.is_active is False
        assert profile.profile_completed is False
        assert profile.is_anonymized is True
        assert profile.processing_status == ProcessingStatus.NOT_STARTED
        assert profile.completed_steps == []
        assert profile.salary_currency == "GBP"
        assert profile.staging_metadata["phone"] == "+44 20 7946 0000"

    @pytest.mark.asyncio
    async def test_staging_data_is_not_normalized_on_create(self, db_session, candidate):
        profile = await create_profile(db_session, candidate)

        service = ProfileLifecycleService(db_session)
        assert await service.child_counts(profile.id) == NO_ROWS

    @pytest.mark.asyncio
    async def test_only_candidates_create_profiles(self, db_session, company):
        with pytest.raises(AuthorizationException):
            await create_profile(db_session, company)

    @pytest.mark.asyncio
    async def test_second_profile_conflicts(self, db_session, candidate):
        await create_profile(db_session, candidate)

        with pytest.raises(ConflictException):
            await create_profile(db_session, candidate)

    @pytest.mark.asyncio
    async def test_inverted_salary_range_is_rejected(self, db_session, candidate):
        with pytest.raises(ValidationException):
            await create_profile(db_session, candidate, salary_min=200000, salary_max=100000)


class TestSubmitForReview:
    """Tests for submitting a profile"""

    @pytest.mark.asyncio
    async def test_submit_marks_complete_but_not_active(self, db_session, candidate):
        profile = await create_profile(db_session, candidate)
        service = ProfileLifecycleService(db_session)

        profile = await service.submit_for_review(profile.id, candidate)

        assert profile.review_status == ReviewStatus.PENDING_REVIEW
        assert profile.profile_completed is True
        assert profile.is_active is False
        assert await service.child_counts(profile.id) == NO_ROWS

        entries = await service.list_audit_entries(profile.id)
        assert [entry.action for entry in entries] == [AuditAction.SUBMITTED]
        assert entries[0].actor_id == candidate.id

    @pytest.mark.asyncio
    async def test_resubmitting_pending_profile_is_a_no_op(self, db_session, candidate):
        profile = await create_profile(db_session, candidate)
        service = ProfileLifecycleService(db_session)
        await service.submit_for_review(profile.id, candidate)

        profile = await service.submit_for_review(profile.id, candidate)

        assert profile.review_status == ReviewStatus.PENDING_REVIEW
        assert len(await service.list_audit_entries(profile.id)) == 1

    @pytest.mark.asyncio
    async def test_only_owner_can_submit(self, db_session, candidate):
        profile = await create_profile(db_session, candidate)
        profile_id = profile.id
        other = await create_user(db_session, role=UserRole.CANDIDATE)
        service = ProfileLifecycleService(db_session)

        with pytest.raises(AuthorizationException):
            await service.submit_for_review(profile_id, other)

        profile = await service.get_profile(profile_id)
        assert profile.review_status == ReviewStatus.DRAFT

    @pytest.mark.asyncio
    async def test_approved_profile_cannot_be_resubmitted(self, db_session, admin):
        owner, profile = await approved_profile(db_session, admin)
        profile_id = profile.id
        service = ProfileLifecycleService(db_session)

        with pytest.raises(InvalidStateTransitionException):
            await service.submit_for_review(profile_id, owner)

    @pytest.mark.asyncio
    async def test_missing_profile(self, db_session, candidate):
        service = ProfileLifecycleService(db_session)

        with pytest.raises(NotFoundException):
            await service.submit_for_review("not-a-uuid", candidate)


class TestApprove:
    """Tests for approval and staging migration"""

    @pytest.mark.asyncio
    async def test_approval_migrates_every_category(self, db_session, admin, candidate):
        """Three staged work experiences become three rows on approval"""
        profile = await create_profile(db_session, candidate)
        service = ProfileLifecycleService(db_session)
        await service.submit_for_review(profile.id, candidate)

        result = await service.approve(profile.id, admin, reason="Strong board record")

        profile = result.profile
        assert profile.is_active is True
        assert profile.profile_completed is True
        assert profile.review_status == ReviewStatus.APPROVED
        assert profile.processing_status == ProcessingStatus.COMPLETED
        assert profile.processed_by == admin.id
        assert profile.last_processed_at is not None
        assert sorted(profile.completed_steps) == sorted(ALL_STEPS)
        assert result.migrated == SAMPLE_COUNTS
        assert result.skipped == []
        assert result.warnings == []
        assert await service.child_counts(profile.id) == SAMPLE_COUNTS

    @pytest.mark.asyncio
    async def test_migrated_rows_keep_staged_values(self, db_session, admin):
        _, profile = await approved_profile(db_session, admin)
        repo = CandidateProfileRepository(db_session)

        rows = await repo.list_children(WorkExperience, profile.id)

        assert [row.company_name for row in rows] == ["Acme plc", "Globex", "Initech"]
        assert [row.position for row in rows] == [
            "Chief Financial Officer", "Finance Director", "Non-Executive Director"
        ]
        assert rows[0].is_current is True
        assert rows[0].end_date is None
        assert rows[2].is_board_position is True

        tags = await repo.list_tags(profile.id)
        assert {tag.name for tag in tags} == {"Finance", "Banking"}

    @pytest.mark.asyncio
    async def test_reapproval_creates_no_duplicates(self, db_session, admin):
        owner, profile = await approved_profile(db_session, admin)
        service = ProfileLifecycleService(db_session)

        result = await service.approve(profile.id, admin)

        assert result.migrated == {}
        assert sorted(result.skipped) == sorted(ALL_STEPS)
        assert await service.child_counts(profile.id) == SAMPLE_COUNTS

    @pytest.mark.asyncio
    async def test_approval_records_audit_entry(self, db_session, admin):
        _, profile = await approved_profile(db_session, admin)
        service = ProfileLifecycleService(db_session)

        entries = await service.list_audit_entries(profile.id)

        assert [entry.action for entry in entries] == [AuditAction.SUBMITTED, AuditAction.APPROVED]
        assert entries[-1].actor_id == admin.id
        assert entries[-1].details["migrated"]["work_experiences"] == 3

    @pytest.mark.asyncio
    async def test_draft_cannot_be_approved(self, db_session, admin, candidate):
        profile = await create_profile(db_session, candidate)
        profile_id = profile.id
        service = ProfileLifecycleService(db_session)

        with pytest.raises(InvalidStateTransitionException):
            await service.approve(profile_id, admin)

        profile = await service.get_profile(profile_id)
        assert profile.is_active is False
        assert await service.child_counts(profile_id) == NO_ROWS

    @pytest.mark.asyncio
    async def test_only_admins_approve(self, db_session, candidate, company):
        profile = await create_profile(db_session, candidate)
        service = ProfileLifecycleService(db_session)
        await service.submit_for_review(profile.id, candidate)

        with pytest.raises(AuthorizationException):
            await service.approve(profile.id, company)
        with pytest.raises(AuthorizationException):
            await service.approve(profile.id, candidate)

    @pytest.mark.asyncio
    async def test_absent_categories_warn_and_stay_unmarked(self, db_session, admin, candidate):
        staging = {"schema_version": 1, "workExperiences": [{"company": "Acme", "title": "CFO"}]}
        profile = await create_profile(db_session, candidate, staging=staging)
        service = ProfileLifecycleService(db_session)
        await service.submit_for_review(profile.id, candidate)

        result = await service.approve(profile.id, admin)

        assert result.profile.is_active is True
        assert result.profile.completed_steps == ["work_experiences"]
        assert result.migrated == {"work_experiences": 1}
        assert {warning.category for warning in result.warnings} == set(StagingCategory) - {
            StagingCategory.WORK_EXPERIENCES
        }

        entries = await service.list_audit_entries(profile.id)
        warnings = [entry for entry in entries if entry.action == AuditAction.MIGRATION_WARNING]
        assert len(warnings) == 5

    @pytest.mark.asyncio
    async def test_malformed_category_is_reported_not_fatal(self, db_session, admin, candidate):
        document = StagingMetadata.model_validate(sample_staging()).to_document()
        document["education"] = "MBA, Harvard"
        profile = await create_raw_profile(db_session, candidate, document)
        service = ProfileLifecycleService(db_session)

        result = await service.approve(profile.id, admin)

        assert result.profile.review_status == ReviewStatus.APPROVED
        assert "education" not in result.profile.completed_steps
        assert [warning.category for warning in result.warnings] == [StagingCategory.EDUCATION]
        counts = await service.child_counts(profile.id)
        assert counts["education"] == 0
        assert counts["work_experiences"] == 3

    @pytest.mark.asyncio
    async def test_dropped_entries_are_reported(self, db_session, admin, candidate):
        document = {
            "schema_version": 1,
            "work_experiences": [
                {"company_name": "Acme", "title": "CFO"},
                {"company_name": "No title"},
            ],
        }
        profile = await create_raw_profile(db_session, candidate, document)
        service = ProfileLifecycleService(db_session)

        result = await service.approve(profile.id, admin)

        assert result.migrated["work_experiences"] == 1
        assert "work_experiences" in result.profile.completed_steps
        dropped = [w for w in result.warnings if w.category == StagingCategory.WORK_EXPERIENCES]
        assert len(dropped) == 1
        assert dropped[0].dropped == 1

    @pytest.mark.asyncio
    async def test_failed_category_is_retried_on_reapproval(self, db_session, admin, candidate):
        profile = await create_profile(db_session, candidate)
        profile_id = profile.id
        service = ProfileLifecycleService(db_session)
        await service.submit_for_review(profile_id, candidate)

        async def failing_handler(candidate_id, parsed):
            raise SQLAlchemyError("simulated store failure")

        service.migrator._handlers[StagingCategory.EDUCATION] = failing_handler
        result = await service.approve(profile_id, admin)

        assert result.profile.is_active is True
        assert "education" not in result.profile.completed_steps
        assert len(result.profile.completed_steps) == 5
        assert [w.category for w in result.warnings] == [StagingCategory.EDUCATION]
        assert (await service.child_counts(profile_id))["education"] == 0

        # The failed round rolled back and expired loaded instances
        await db_session.refresh(admin)
        retry = await ProfileLifecycleService(db_session).approve(profile_id, admin)

        assert retry.migrated == {"education": 1}
        assert len(retry.skipped) == 5
        assert sorted(retry.profile.completed_steps) == sorted(ALL_STEPS)
        assert await service.child_counts(profile_id) == SAMPLE_COUNTS


    @pytest.mark.asyncio
    async def test_over_long_labels_are_dropped_not_fatal(self, db_session, admin, candidate):
        document = {
            "schema_version": 1,
            "board_committees": ["Audit", "x" * 300],
        }
        profile = await create_raw_profile(db_session, candidate, document)
        service = ProfileLifecycleService(db_session)

        result = await service.approve(profile.id, admin)

        assert result.migrated["board_committees"] == 1
        assert "board_committees" in result.profile.completed_steps
        dropped = [w for w in result.warnings if w.category == StagingCategory.BOARD_COMMITTEES]
        assert dropped[0].dropped == 1

    @pytest.mark.asyncio
    async def test_rejection_during_migration_is_not_overwritten(self, database, db_session, admin, candidate):
        profile = await create_profile(db_session, candidate)
        profile_id = profile.id
        service = ProfileLifecycleService(db_session)
        await service.submit_for_review(profile_id, candidate)

        migrate = service.migrator.migrate

        async def migrate_then_reject(target_id, admin_id=None):
            report = await migrate(target_id, admin_id=admin_id)
            async with database.session_factory() as other:
                moderator = await UserRepository(other).get_by_id(admin_id)
                await ProfileLifecycleService(other).reject(target_id, moderator, "Withdrawn by the board")
            return report

        service.migrator.migrate = migrate_then_reject
        with pytest.raises(InvalidStateTransitionException):
            await service.approve(profile_id, admin)

        async with database.session_factory() as session:
            stored = await CandidateProfileRepository(session).get_by_id(profile_id)
            assert stored.review_status == ReviewStatus.REJECTED
            assert stored.is_active is False
            assert stored.rejection_reason == "Withdrawn by the board"


class TestConcurrentApproval:
    """Tests for approvals racing on separate sessions"""

    @pytest.mark.asyncio
    async def test_concurrent_approvals_never_duplicate_rows(self, database):
        async with database.session_factory() as session:
            owner = await create_user(session, role=UserRole.CANDIDATE)
            moderator = await create_user(session, role=UserRole.ADMIN)
            admin_id = moderator.id
            profile = await create_profile(session, owner)
            profile_id = profile.id
            await ProfileLifecycleService(session).submit_for_review(profile_id, owner)

        async def approve():
            async with database.session_factory() as session:
                actor = await UserRepository(session).get_by_id(admin_id)
                return await ProfileLifecycleService(session).approve(profile_id, actor)

        results = await asyncio.gather(approve(), approve(), return_exceptions=True)

        for result in results:
            if isinstance(result, Exception):
                # SQLite serializes writers; a loser may see the lock instead
                assert isinstance(result, OperationalError)
        assert any(isinstance(result, ApprovalResult) for result in results)

        async with database.session_factory() as session:
            service = ProfileLifecycleService(session)
            counts = await service.child_counts(profile_id)
            for name, expected in SAMPLE_COUNTS.items():
                assert counts[name] in (0, expected)

            # A category lost to the race is picked up by the next approval
            actor = await UserRepository(session).get_by_id(admin_id)
            final = await service.approve(profile_id, actor)

            assert final.profile.is_active is True
            assert sorted(final.profile.completed_steps) == sorted(ALL_STEPS)
            assert await service.child_counts(profile_id) == SAMPLE_COUNTS


class TestReject:
    """Tests for rejection"""

    @pytest.mark.asyncio
    async def test_reject_pending_profile(self, db_session, admin, candidate):
        profile = await create_profile(db_session, candidate)
        service = ProfileLifecycleService(db_session)
        await service.submit_for_review(profile.id, candidate)

        profile = await service.reject(profile.id, admin, "  Incomplete board history  ")

        assert profile.review_status == ReviewStatus.REJECTED
        assert profile.is_active is False
        assert profile.rejection_reason == "Incomplete board history"
        assert profile.staging_metadata["work_experiences"]

        entries = await service.list_audit_entries(profile.id)
        assert entries[-1].action == AuditAction.REJECTED
        assert entries[-1].reason == "Incomplete board history"

    @pytest.mark.asyncio
    async def test_rejected_profile_can_be_resubmitted(self, db_session, admin, candidate):
        profile = await create_profile(db_session, candidate)
        service = ProfileLifecycleService(db_session)
        await service.submit_for_review(profile.id, candidate)
        await service.reject(profile.id, admin, "Missing education")

        profile = await service.submit_for_review(profile.id, candidate)

        assert profile.review_status == ReviewStatus.PENDING_REVIEW
        assert profile.is_active is False

    @pytest.mark.asyncio
    async def test_rejecting_approved_profile_deactivates_it(self, db_session, admin):
        _, profile = await approved_profile(db_session, admin)
        service = ProfileLifecycleService(db_session)

        profile = await service.reject(profile.id, admin, "Conflict of interest")

        assert profile.is_active is False
        assert profile.review_status == ReviewStatus.REJECTED
        assert await service.child_counts(profile.id) == SAMPLE_COUNTS

    @pytest.mark.asyncio
    async def test_reason_is_required(self, db_session, admin, candidate):
        profile = await create_profile(db_session, candidate)
        service = ProfileLifecycleService(db_session)
        await service.submit_for_review(profile.id, candidate)

        for reason in ("", "   ", None):
            with pytest.raises(ValidationException):
                await service.reject(profile.id, admin, reason)

    @pytest.mark.asyncio
    async def test_draft_cannot_be_rejected(self, db_session, admin, candidate):
        profile = await create_profile(db_session, candidate)
        service = ProfileLifecycleService(db_session)

        with pytest.raises(InvalidStateTransitionException):
            await service.reject(profile.id, admin, "Not ready")

    @pytest.mark.asyncio
    async def test_only_admins_reject(self, db_session, candidate):
        profile = await create_profile(db_session, candidate)
        service = ProfileLifecycleService(db_session)

        with pytest.raises(AuthorizationException):
            await service.reject(profile.id, candidate, "Self rejection")


class TestToggleAnonymity:
    """Tests for the anonymity toggle"""

    @pytest.mark.asyncio
    async def test_toggle_flips_flag_and_counts(self, db_session, admin):
        owner, profile = await approved_profile(db_session, admin)
        service = ProfileLifecycleService(db_session)

        result = await service.toggle_anonymity(profile.id, owner)

        assert result.previous is True
        assert result.current is False
        assert result.profile.is_anonymized is False
        assert result.profile.anonymity_toggle_count == 1
        assert result.profile.last_anonymity_toggle_at is not None

        entries = await service.list_audit_entries(profile.id)
        assert entries[-1].action == AuditAction.ANONYMITY_TOGGLED
        assert entries[-1].details == {"previous": True, "current": False, "toggle_count": 1}

    @pytest.mark.asyncio
    async def test_toggling_twice_restores_original(self, db_session, admin):
        owner, profile = await approved_profile(db_session, admin)
        service = ProfileLifecycleService(db_session)

        await service.toggle_anonymity(profile.id, owner)
        result = await service.toggle_anonymity(profile.id, owner)

        assert result.current is True
        assert result.profile.anonymity_toggle_count == 2

    @pytest.mark.asyncio
    async def test_inactive_profile_cannot_toggle(self, db_session, candidate):
        profile = await create_profile(db_session, candidate)
        profile_id = profile.id
        service = ProfileLifecycleService(db_session)

        with pytest.raises(InvalidStateTransitionException):
            await service.toggle_anonymity(profile_id, candidate)

        profile = await service.get_profile(profile_id)
        assert profile.is_anonymized is True
        assert profile.anonymity_toggle_count == 0

    @pytest.mark.asyncio
    async def test_only_owner_can_toggle(self, db_session, admin, company):
        _, profile = await approved_profile(db_session, admin)
        profile_id = profile.id
        service = ProfileLifecycleService(db_session)

        with pytest.raises(AuthorizationException):
            await service.toggle_anonymity(profile_id, company)

        await db_session.refresh(admin)
        with pytest.raises(AuthorizationException):
            await service.toggle_anonymity(profile_id, admin)


class TestUpdateProfile:
    """Tests for a candidate editing their own profile"""

    @pytest.mark.asyncio
    async def test_owner_edits_draft(self, db_session, candidate):
        profile = await create_profile(db_session, candidate, title="Chair")
        service = ProfileLifecycleService(db_session)

        profile = await service.update_profile(
            profile.id, candidate, {"summary": "Audit committee chair", "salary_currency": "eur"}
        )

        assert profile.title == "Chair"
        assert profile.summary == "Audit committee chair"
        assert profile.salary_currency == "EUR"
        assert profile.last_self_edit_fields == ["summary", "salary_currency"]
        assert profile.last_self_edit_at is not None

        entries = await service.list_audit_entries(profile.id)
        assert entries[-1].action == AuditAction.EDITED
        assert entries[-1].actor_id == candidate.id
        assert entries[-1].details == {"fields": ["summary", "salary_currency"], "review_status": "draft"}

    @pytest.mark.asyncio
    async def test_rejected_profile_is_edited_and_resubmitted(self, db_session, admin):
        owner, profile = await approved_profile(db_session, admin)
        profile_id = profile.id
        service = ProfileLifecycleService(db_session)
        await service.reject(profile_id, admin, "Please list your current committees")

        staging = sample_staging()
        staging["boardCommittees"] = ["Risk"]
        profile = await service.update_profile(
            profile_id, owner, {"staging_metadata": StagingMetadata.model_validate(staging)}
        )

        assert profile.completed_steps == []
        assert profile.processing_status == ProcessingStatus.NOT_STARTED
        assert profile.staging_metadata["board_committees"] == ["Risk"]

        await service.submit_for_review(profile_id, owner)
        result = await service.approve(profile_id, admin)

        assert result.profile.is_active is True
        assert await service.child_counts(profile_id) == {**SAMPLE_COUNTS, "board_committees": 1}

    @pytest.mark.asyncio
    async def test_approved_profile_cannot_be_edited(self, db_session, admin):
        owner, profile = await approved_profile(db_session, admin)
        service = ProfileLifecycleService(db_session)

        with pytest.raises(InvalidStateTransitionException):
            await service.update_profile(profile.id, owner, {"title": "Chair"})

    @pytest.mark.asyncio
    async def test_only_owner_can_edit(self, db_session, candidate):
        profile = await create_profile(db_session, candidate)
        profile_id = profile.id
        other = await create_user(db_session, role=UserRole.CANDIDATE)

        with pytest.raises(AuthorizationException):
            await ProfileLifecycleService(db_session).update_profile(profile_id, other, {"title": "Chair"})

    @pytest.mark.asyncio
    async def test_lifecycle_fields_are_not_editable(self, db_session, candidate):
        profile = await create_profile(db_session, candidate)

        with pytest.raises(ValidationException):
            await ProfileLifecycleService(db_session).update_profile(profile.id, candidate, {"is_active": True})

    @pytest.mark.asyncio
    async def test_inverted_salary_range_is_rejected(self, db_session, candidate):
        profile = await create_profile(db_session, candidate, salary_max=Decimal("90000"))
        profile_id = profile.id
        service = ProfileLifecycleService(db_session)

        with pytest.raises(ValidationException):
            await service.update_profile(profile_id, candidate, {"salary_min": Decimal("120000")})

        stored = await service.get_profile(profile_id)
        assert stored.salary_min is None


class TestProfileDeletion:
    """Tests for administrative removal of a candidate"""

    @pytest.mark.asyncio
    async def test_deleting_user_removes_profile_and_children(self, db_session, admin):
        owner, profile = await approved_profile(db_session, admin)
        owner_id, profile_id = owner.id, profile.id

        await db_session.execute(delete(User).where(User.id == owner_id))
        await db_session.commit()

        remaining = await db_session.execute(
            select(CandidateProfile).where(CandidateProfile.id == profile_id)
        )
        assert remaining.scalar_one_or_none() is None
        assert await ProfileLifecycleService(db_session).child_counts(profile_id) == NO_ROWS
