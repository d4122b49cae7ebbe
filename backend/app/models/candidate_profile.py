"""Candidate profile model and its administrative audit trail"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    DECIMAL,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.sql import func
from backend.app.core.database import Base
from backend.app.models.base import JSONType, TimestampMixin, enum_type, utcnow
import uuid
import enum


class ReviewStatus(str, enum.Enum):
    """Position of a profile in the review workflow"""
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class ProcessingStatus(str, enum.Enum):
    """Progress of the staging-to-normalized migration"""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class AuditAction(str, enum.Enum):
    """Kinds of entries in a profile's audit trail"""
    EDITED = "edited"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    MIGRATION_WARNING = "migration_warning"
    ANONYMITY_TOGGLED = "anonymity_toggled"


class CandidateProfile(Base, TimestampMixin):
    """Board-level candidate profile"""

    __tablename__ = "candidate_profiles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)

    # Descriptive fields
    title = Column(String(255), nullable=True)
    summary = Column(Text, nullable=True)
    experience = Column(String(50), nullable=True, index=True)
    location = Column(String(255), nullable=True, index=True)
    remote_preference = Column(String(50), nullable=True)
    availability = Column(String(50), nullable=True)
    salary_min = Column(DECIMAL(12, 2), nullable=True)
    salary_max = Column(DECIMAL(12, 2), nullable=True)
    salary_currency = Column(String(3), nullable=False, default="GBP")
    linkedin_url = Column(String(500), nullable=True)

    # Lifecycle flags
    is_active = Column(Boolean, nullable=False, default=False, index=True)
    profile_completed = Column(Boolean, nullable=False, default=False)
    is_anonymized = Column(Boolean, nullable=False, default=True, index=True)
    review_status = Column(
        enum_type(ReviewStatus, "reviewstatus"),
        nullable=False,
        default=ReviewStatus.DRAFT,
        index=True,
    )
    rejection_reason = Column(Text, nullable=True)

    # Self-reported data awaiting approval, see schemas.staging
    staging_metadata = Column(JSONType, nullable=False, default=dict)

    # Migration progress; completed_steps is the per-category commit marker
    processing_status = Column(
        enum_type(ProcessingStatus, "processingstatus"),
        nullable=False,
        default=ProcessingStatus.NOT_STARTED,
    )
    completed_steps = Column(JSONType, nullable=False, default=list)
    last_processed_at = Column(DateTime(timezone=True), nullable=True)
    processed_by = Column(Uuid, ForeignKey("users.id"), nullable=True)

    # Anonymity toggle bookkeeping
    anonymity_toggle_count = Column(Integer, nullable=False, default=0)
    last_anonymity_toggle_at = Column(DateTime(timezone=True), nullable=True)

    # Candidate self-edits
    last_self_edit_at = Column(DateTime(timezone=True), nullable=True)
    last_self_edit_fields = Column(JSONType, nullable=True)

    def __repr__(self):
        return (
            f"<CandidateProfile(id={self.id}, review_status={self.review_status}, "
            f"is_active={self.is_active})>"
        )


class ProfileAuditEntry(Base):
    """Append-only administrative audit trail for a profile"""

    __tablename__ = "profile_audit_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    profile_id = Column(
        Uuid,
        ForeignKey("candidate_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    actor_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    action = Column(enum_type(AuditAction, "auditaction"), nullable=False)
    reason = Column(Text, nullable=True)
    details = Column(JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<ProfileAuditEntry(profile_id={self.profile_id}, action={self.action})>"
