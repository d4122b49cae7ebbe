"""Normalized profile sub-entities created by the approval migration"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    DECIMAL,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.sql import func
from backend.app.core.database import Base
from backend.app.models.base import enum_type, utcnow
import uuid
import enum


def _candidate_fk():
    return Column(
        Uuid,
        ForeignKey("candidate_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


def _created_at():
    return Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


class TagCategory(str, enum.Enum):
    """Tag vocabulary categories"""
    SKILL = "skill"
    EXPERTISE = "expertise"
    INDUSTRY = "industry"
    CERTIFICATION = "certification"
    LANGUAGE = "language"
    OTHER = "other"


class WorkExperience(Base):
    """Employment or board position held by a candidate"""

    __tablename__ = "work_experiences"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    candidate_id = _candidate_fk()
    company_name = Column(String(255), nullable=False, index=True)
    position = Column(String(255), nullable=False)
    location = Column(String(255), nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    is_current = Column(Boolean, nullable=False, default=False)
    description = Column(Text, nullable=True)
    is_board_position = Column(Boolean, nullable=False, default=False)
    company_type = Column(String(100), nullable=True)
    order = Column(Integer, nullable=False, default=0)
    created_at = _created_at()


class Education(Base):
    """Education record"""

    __tablename__ = "education"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    candidate_id = _candidate_fk()
    institution = Column(String(255), nullable=False)
    degree = Column(String(255), nullable=False)
    field_of_study = Column(String(255), nullable=True)
    graduation_date = Column(Date, nullable=True)
    order = Column(Integer, nullable=False, default=0)
    created_at = _created_at()


class DealExperience(Base):
    """Transaction (M&A, IPO, fundraising...) a candidate took part in"""

    __tablename__ = "deal_experiences"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    candidate_id = _candidate_fk()
    deal_type = Column(String(100), nullable=False)
    deal_value = Column(DECIMAL(18, 2), nullable=True)
    deal_currency = Column(String(3), nullable=False, default="GBP")
    company_name = Column(String(255), nullable=False)
    role = Column(String(255), nullable=True)
    year = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)
    sector = Column(String(255), nullable=True)
    created_at = _created_at()


class BoardCommittee(Base):
    """Board committee membership (audit, remuneration, nomination...)"""

    __tablename__ = "board_committees"
    __table_args__ = (
        UniqueConstraint("candidate_id", "committee_type", name="uq_board_committees_candidate_type"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    candidate_id = _candidate_fk()
    committee_type = Column(String(100), nullable=False)
    created_at = _created_at()


class BoardExperienceType(Base):
    """Kind of board experience (ftse100, aim, private-equity...)"""

    __tablename__ = "board_experience_types"
    __table_args__ = (
        UniqueConstraint("candidate_id", "experience_type", name="uq_board_experience_types_candidate_type"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    candidate_id = _candidate_fk()
    experience_type = Column(String(100), nullable=False)
    created_at = _created_at()


class Tag(Base):
    """Shared tag vocabulary"""

    __tablename__ = "tags"
    __table_args__ = (
        UniqueConstraint("name", "category", name="uq_tags_name_category"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, index=True)
    category = Column(enum_type(TagCategory, "tagcategory"), nullable=False, default=TagCategory.OTHER, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = _created_at()

    def __repr__(self):
        return f"<Tag(name={self.name}, category={self.category})>"


class CandidateTag(Base):
    """Association between a candidate profile and a tag"""

    __tablename__ = "candidate_tags"
    __table_args__ = (
        UniqueConstraint("candidate_id", "tag_id", name="uq_candidate_tags_candidate_tag"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    candidate_id = _candidate_fk()
    tag_id = Column(Uuid, ForeignKey("tags.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = _created_at()
