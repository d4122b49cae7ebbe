"""Candidate profile schemas for API requests and responses"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID
from pydantic import BaseModel, Field, field_validator, ConfigDict

from backend.app.models.candidate_profile import AuditAction, ProcessingStatus, ReviewStatus
from backend.app.models.profile_entities import TagCategory
from backend.app.schemas.staging import StagingMetadata


class ProfileCreateRequest(BaseModel):
    """Request schema for creating a draft profile"""
    title: Optional[str] = Field(None, max_length=255, description="Headline, e.g. Non-Executive Director")
    summary: Optional[str] = Field(None, description="Professional summary")
    experience: Optional[str] = Field(None, max_length=50, description="Experience band")
    location: Optional[str] = Field(None, max_length=255)
    remote_preference: Optional[str] = Field(None, max_length=50)
    availability: Optional[str] = Field(None, max_length=50)
    salary_min: Optional[Decimal] = Field(None, ge=0)
    salary_max: Optional[Decimal] = Field(None, ge=0)
    salary_currency: Optional[str] = Field(None, min_length=3, max_length=3)
    linkedin_url: Optional[str] = Field(None, max_length=500)
    staging_metadata: StagingMetadata = Field(default_factory=StagingMetadata)

    @field_validator('title', 'summary', 'location', 'experience', 'linkedin_url')
    @classmethod
    def blank_to_none(cls, v):
        if v is not None:
            return v.strip() or None
        return v

    @field_validator('salary_max')
    @classmethod
    def validate_salary_range(cls, v, info):
        if v is not None and info.data.get('salary_min') is not None:
            if v < info.data['salary_min']:
                raise ValueError('Maximum salary cannot be less than minimum salary')
        return v

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Non-Executive Director",
                "location": "London",
                "experience": "20+",
                "staging_metadata": {
                    "schema_version": 1,
                    "workExperiences": [
                        {"companyName": "Acme plc", "title": "CFO", "startDate": "2015-03", "isCurrent": True}
                    ],
                    "boardCommittees": ["Audit", "Remuneration"],
                    "tags": [{"name": "Finance", "category": "expertise"}]
                }
            }
        }
    )


class ProfileUpdateRequest(BaseModel):
    """Request schema for a candidate's partial edit; omitted fields are left unchanged"""
    title: Optional[str] = Field(None, max_length=255)
    summary: Optional[str] = None
    experience: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=255)
    remote_preference: Optional[str] = Field(None, max_length=50)
    availability: Optional[str] = Field(None, max_length=50)
    salary_min: Optional[Decimal] = Field(None, ge=0)
    salary_max: Optional[Decimal] = Field(None, ge=0)
    salary_currency: Optional[str] = Field(None, min_length=3, max_length=3)
    linkedin_url: Optional[str] = Field(None, max_length=500)
    staging_metadata: Optional[StagingMetadata] = None

    @field_validator('title', 'summary', 'location', 'experience', 'linkedin_url')
    @classmethod
    def blank_to_none(cls, v):
        if v is not None:
            return v.strip() or None
        return v

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {
                "summary": "Former CFO, chair of two audit committees",
                "staging_metadata": {"schema_version": 1, "boardCommittees": ["Audit", "Risk"]}
            }
        }
    )

    def changes(self) -> Dict[str, object]:
        """Fields the client actually sent"""
        return {
            name: getattr(self, name)
            for name in type(self).model_fields
            if name in self.model_fields_set
        }


class ReviewActionRequest(BaseModel):
    """Request schema for approval"""
    reason: Optional[str] = Field(None, max_length=2000)


class RejectRequest(BaseModel):
    """Request schema for rejection"""
    reason: str = Field(..., min_length=1, max_length=2000)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, v):
        if not v.strip():
            raise ValueError('A rejection reason is required')
        return v.strip()


class ProfileStateResponse(BaseModel):
    """Lifecycle state of a profile"""
    id: UUID
    user_id: UUID
    is_active: bool
    profile_completed: bool
    is_anonymized: bool
    review_status: ReviewStatus
    rejection_reason: Optional[str] = None
    processing_status: ProcessingStatus
    completed_steps: List[str] = []
    last_processed_at: Optional[datetime] = None
    anonymity_toggle_count: int = 0
    last_anonymity_toggle_at: Optional[datetime] = None
    last_self_edit_at: Optional[datetime] = None
    last_self_edit_fields: Optional[List[str]] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MigrationWarningResponse(BaseModel):
    """A staging category that was skipped or partially migrated"""
    category: str
    message: str
    dropped: int = 0


class ApprovalResponse(BaseModel):
    """Result of an approval round"""
    profile: ProfileStateResponse
    migrated: Dict[str, int] = {}
    skipped: List[str] = []
    warnings: List[MigrationWarningResponse] = []
    child_counts: Dict[str, int] = {}


class AnonymityToggleResponse(BaseModel):
    """Previous and new anonymity state"""
    profile_id: UUID
    previous: bool
    current: bool
    toggle_count: int
    toggled_at: Optional[datetime] = None


class AuditEntryResponse(BaseModel):
    """Audit trail entry"""
    id: int
    action: AuditAction
    actor_id: Optional[UUID] = None
    reason: Optional[str] = None
    details: Optional[dict] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WorkExperienceResponse(BaseModel):
    company_name: str
    position: str
    location: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_current: bool = False
    description: Optional[str] = None
    is_board_position: bool = False
    company_type: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class EducationResponse(BaseModel):
    institution: str
    degree: str
    field_of_study: Optional[str] = None
    graduation_date: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)


class DealExperienceResponse(BaseModel):
    deal_type: str
    deal_value: Optional[Decimal] = None
    deal_currency: str
    company_name: str
    role: Optional[str] = None
    year: Optional[int] = None
    description: Optional[str] = None
    sector: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TagResponse(BaseModel):
    name: str
    category: TagCategory

    model_config = ConfigDict(from_attributes=True)


class IdentityBlock(BaseModel):
    """Identifying details, revealed only after unlock or when not anonymized"""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    linkedin_url: Optional[str] = None


class ProfileView(BaseModel):
    """Profile as seen by a particular viewer"""
    id: UUID
    title: Optional[str] = None
    summary: Optional[str] = None
    experience: Optional[str] = None
    location: Optional[str] = None
    remote_preference: Optional[str] = None
    availability: Optional[str] = None
    salary_min: Optional[Decimal] = None
    salary_max: Optional[Decimal] = None
    salary_currency: str
    is_active: bool
    is_anonymized: bool
    review_status: ReviewStatus
    identity_revealed: bool
    identity: Optional[IdentityBlock] = None
    work_experiences: List[WorkExperienceResponse] = []
    education: List[EducationResponse] = []
    deal_experiences: List[DealExperienceResponse] = []
    board_committees: List[str] = []
    board_experience_types: List[str] = []
    tags: List[TagResponse] = []


class UnlockResponse(BaseModel):
    """Result of paying to unlock a profile"""
    charged: int
    already_unlocked: bool
    balance: int
    profile: ProfileView


class ProfileCard(BaseModel):
    """Anonymized summary card returned by search"""
    id: UUID
    title: Optional[str] = None
    summary: Optional[str] = None
    experience: Optional[str] = None
    location: Optional[str] = None
    remote_preference: Optional[str] = None
    availability: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ProfileSearchResponse(BaseModel):
    """Paginated search results"""
    items: List[ProfileCard]
    total: int
    skip: int
    limit: int
