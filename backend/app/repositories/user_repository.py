"""User repository for database operations"""

from typing import Optional, List, Union
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from passlib.context import CryptContext

from backend.app.models.user import User, UserRole
from backend.app.models.permission import AdminPermission, Permission
from backend.app.core.logging import get_logger

logger = get_logger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def _as_uuid(value: Union[str, UUID]) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


class UserRepository:
    """Repository for User CRUD operations"""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a password using bcrypt"""
        if not password:
            raise ValueError("Password must not be empty")
        return pwd_context.hash(password)

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash"""
        return pwd_context.verify(plain_password, hashed_password)

    async def create(
        self,
        username: str,
        email: str,
        password: str,
        role: UserRole = UserRole.CANDIDATE,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None
    ) -> User:
        """Create a new user"""
        user = User(
            username=username,
            email=email,
            password_hash=self.hash_password(password),
            role=role,
            first_name=first_name,
            last_name=last_name,
        )

        self.session.add(user)
        await self.session.flush()

        logger.info(f"Created user: {user.username} with role {user.role.value}")
        return user

    async def get_by_id(self, user_id: Union[str, UUID]) -> Optional[User]:
        """Get user by ID"""
        try:
            user_uuid = _as_uuid(user_id)
        except ValueError:
            return None
        result = await self.session.execute(
            select(User).where(User.id == user_uuid)
        )
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> Optional[User]:
        """Get user by username"""
        result = await self.session.execute(
            select(User).where(User.username == username)
        )
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email"""
        result = await self.session.execute(
            select(User).where(User.email == email)
        )
        return result.scalar_one_or_none()

    async def authenticate(self, username: str, password: str) -> Optional[User]:
        """Authenticate user by username and password"""
        user = await self.get_by_username(username)

        if not user:
            logger.warning(f"Authentication failed: user {username} not found")
            return None

        if not user.is_active:
            logger.warning(f"Authentication failed: user {username} is deactivated")
            return None

        if not self.verify_password(password, user.password_hash):
            logger.warning(f"Authentication failed: invalid password for {username}")
            return None

        logger.info(f"User authenticated: {username}")
        return user

    async def has_permission(self, user_id: UUID, permission: Permission) -> bool:
        """Check whether a permission row exists for the user"""
        result = await self.session.execute(
            select(AdminPermission.id).where(
                AdminPermission.user_id == user_id,
                AdminPermission.permission == permission.value,
            )
        )
        return result.first() is not None

    async def list_permissions(self, user_id: UUID) -> List[str]:
        """List permission names granted to a user"""
        result = await self.session.execute(
            select(AdminPermission.permission)
            .where(AdminPermission.user_id == user_id)
            .order_by(AdminPermission.permission)
        )
        return list(result.scalars().all())

    async def grant_permission(
        self,
        user_id: UUID,
        permission: Permission,
        granted_by: Optional[UUID] = None
    ) -> AdminPermission:
        """Grant a permission to a user (no-op if already granted)"""
        result = await self.session.execute(
            select(AdminPermission).where(
                AdminPermission.user_id == user_id,
                AdminPermission.permission == permission.value,
            )
        )
        existing = result.scalar_one_or_none()
        if existing:
            return existing

        grant = AdminPermission(user_id=user_id, permission=permission.value, granted_by=granted_by)
        self.session.add(grant)
        await self.session.flush()

        logger.info(f"Granted {permission.value} to user {user_id}")
        return grant
