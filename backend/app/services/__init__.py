"""Business logic services"""

from backend.app.services.auth_service import AuthService, auth_service
from backend.app.services.credit_ledger import CreditLedger
from backend.app.services.profile_lifecycle_service import ProfileLifecycleService
from backend.app.services.profile_migration import StagingMigrator
from backend.app.services.profile_query_service import ProfileQueryService

__all__ = [
    'AuthService',
    'auth_service',
    'CreditLedger',
    'ProfileLifecycleService',
    'StagingMigrator',
    'ProfileQueryService',
]
