"""Database models"""

from backend.app.models.base import TimestampMixin
from backend.app.models.user import User, UserRole
from backend.app.models.permission import AdminPermission, Permission
from backend.app.models.candidate_profile import (
    AuditAction,
    CandidateProfile,
    ProcessingStatus,
    ProfileAuditEntry,
    ReviewStatus,
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
from backend.app.models.credit import (
    CreditAccount,
    CreditReason,
    CreditTransaction,
    ProfileUnlock,
)

__all__ = [
    "TimestampMixin",
    "User",
    "UserRole",
    "AdminPermission",
    "Permission",
    "AuditAction",
    "CandidateProfile",
    "ProcessingStatus",
    "ProfileAuditEntry",
    "ReviewStatus",
    "BoardCommittee",
    "BoardExperienceType",
    "CandidateTag",
    "DealExperience",
    "Education",
    "Tag",
    "TagCategory",
    "WorkExperience",
    "CreditAccount",
    "CreditReason",
    "CreditTransaction",
    "ProfileUnlock",
]
