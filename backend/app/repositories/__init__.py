"""Data access layer"""

from backend.app.repositories.user_repository import UserRepository
from backend.app.repositories.candidate_profile_repository import CandidateProfileRepository
from backend.app.repositories.credit_repository import CreditRepository

__all__ = ['UserRepository', 'CandidateProfileRepository', 'CreditRepository']
