"""Security utilities and dependencies for authentication"""

from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.exceptions import AuthenticationException, AuthorizationException
from backend.app.models.permission import Permission
from backend.app.models.user import User, UserRole
from backend.app.repositories.user_repository import UserRepository
from backend.app.services.auth_service import auth_service
from backend.app.core.logging import get_logger

logger = get_logger(__name__)

# HTTP Bearer token scheme; missing credentials are reported as 401 below
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Dependency to get current authenticated user from JWT token

    Args:
        credentials: HTTP Bearer credentials
        db: Database session

    Returns:
        Current user

    Raises:
        AuthenticationException: If the token is missing or invalid, the user
            is unknown or deactivated, or the role claim is stale
    """
    if credentials is None:
        raise AuthenticationException("Missing bearer token")

    # Verify token
    payload = auth_service.verify_access_token(credentials.credentials)
    if not payload:
        logger.warning("Invalid or expired token")
        raise AuthenticationException("Invalid or expired token")

    # Get user ID from token
    user_id = payload.get("sub")
    if not user_id:
        logger.warning("Token missing user ID")
        raise AuthenticationException("Invalid token payload")

    # Get user from database
    user_repo = UserRepository(db)
    user = await user_repo.get_by_id(user_id)

    if not user:
        logger.warning(f"User not found: {user_id}")
        raise AuthenticationException("User not found")

    if not user.is_active:
        logger.warning(f"Deactivated user presented a token: {user_id}")
        raise AuthenticationException("User is deactivated")

    if not auth_service.claims_match_user(payload, user):
        logger.warning(f"Stale role claim for user {user_id}")
        raise AuthenticationException("Token no longer matches the user's role")

    return user


class RoleChecker:
    """Dependency class for role-based access control"""

    def __init__(self, allowed_roles: list[UserRole]):
        self.allowed_roles = allowed_roles

    def __call__(self, current_user: User = Depends(get_current_user)) -> User:
        """
        Check if current user has required role

        Args:
            current_user: Current authenticated user

        Returns:
            Current user if authorized

        Raises:
            AuthorizationException: If user doesn't have required role
        """
        if current_user.role not in self.allowed_roles:
            logger.warning(
                f"User {current_user.username} with role {current_user.role.value} "
                f"attempted to access resource requiring roles: {[r.value for r in self.allowed_roles]}"
            )
            raise AuthorizationException(
                f"Insufficient permissions. Required roles: {[r.value for r in self.allowed_roles]}"
            )

        return current_user


require_admin = RoleChecker([UserRole.ADMIN])


class PermissionChecker:
    """
    Dependency class for admin actions

    Requires the admin role AND an explicit row in ``admin_permissions``;
    there is no built-in list of privileged users.
    """

    def __init__(self, permission: Permission):
        self.permission = permission

    async def __call__(
        self,
        current_user: User = Depends(require_admin),
        db: AsyncSession = Depends(get_db)
    ) -> User:
        user_repo = UserRepository(db)
        if not await user_repo.has_permission(current_user.id, self.permission):
            logger.warning(
                f"Admin {current_user.username} lacks permission {self.permission.value}"
            )
            raise AuthorizationException(f"Missing permission: {self.permission.value}")
        return current_user


# Pre-defined role checkers
require_candidate = RoleChecker([UserRole.CANDIDATE])
require_company = RoleChecker([UserRole.ADMIN, UserRole.COMPANY])

# Pre-defined permission checkers
require_moderator = PermissionChecker(Permission.PROFILES_MODERATE)
require_credit_granter = PermissionChecker(Permission.CREDITS_GRANT)
