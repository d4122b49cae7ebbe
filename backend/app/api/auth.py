"""Authentication API endpoints"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.exceptions import AuthenticationException, ConflictException
from backend.app.core.security import get_current_user
from backend.app.repositories.user_repository import UserRepository
from backend.app.services.auth_service import auth_service
from backend.app.schemas.auth import (
    UserCreate, UserLogin, TokenResponse, TokenRefresh, UserResponse
)
from backend.app.schemas.envelope import ApiResponse
from backend.app.models.user import User
from backend.app.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "/register",
    response_model=ApiResponse[UserResponse],
    status_code=status.HTTP_201_CREATED
)
async def register(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a new user account

    Creates a candidate or company account. Admin accounts cannot be
    self-registered; they are provisioned with explicit permissions.

    ## Request Body

    - **username**: Unique username (3-50 characters, alphanumeric and underscores only)
    - **email**: Valid email address
    - **password**: Password (minimum 8 characters)
    - **role**: `candidate` (default) or `company`
    - **first_name** / **last_name**: Optional, revealed to companies only after unlock

    ## Error Responses

    - **400 Bad Request**: Validation error (invalid format, admin role requested)
    - **409 Conflict**: Username or email already exists

    ## Example Usage

    ```bash
    curl -X POST "http://localhost:8000/api/v1/auth/register" \\
         -H "Content-Type: application/json" \\
         -d '{
           "username": "jane_ned",
           "email": "jane@example.com",
           "password": "SecurePass123!",
           "role": "candidate"
         }'
    ```
    """
    user_repo = UserRepository(db)

    # Check if username already exists
    existing_user = await user_repo.get_by_username(user_data.username)
    if existing_user:
        raise ConflictException("Username already registered")

    # Check if email already exists
    existing_email = await user_repo.get_by_email(user_data.email)
    if existing_email:
        raise ConflictException("Email already registered")

    # Create user
    user = await user_repo.create(
        username=user_data.username,
        email=user_data.email,
        password=user_data.password,
        role=user_data.role,
        first_name=user_data.first_name,
        last_name=user_data.last_name
    )

    await db.commit()

    logger.info(f"User registered: {user.username}")
    return ApiResponse(data=UserResponse.model_validate(user), message="Account created")


@router.post("/login", response_model=ApiResponse[TokenResponse])
async def login(
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """
    Authenticate user and obtain JWT tokens

    Returns a short-lived access token and a long-lived refresh token.
    Include the access token in the Authorization header:

    ```
    Authorization: Bearer <access_token>
    ```

    ## Error Responses

    - **401 Unauthorized**: Invalid username or password, or deactivated account
    """
    user_repo = UserRepository(db)

    # Authenticate user
    user = await user_repo.authenticate(credentials.username, credentials.password)

    if not user:
        raise AuthenticationException("Incorrect username or password")

    logger.info(f"User logged in: {user.username}")
    return ApiResponse(data=auth_service.issue_tokens(user))


@router.post("/refresh", response_model=ApiResponse[TokenResponse])
async def refresh_token(
    token_data: TokenRefresh,
    db: AsyncSession = Depends(get_db)
):
    """
    Refresh access token using refresh token

    The user is re-loaded, so a deactivated account or a changed role is
    picked up by the new access token.

    ## Error Responses

    - **401 Unauthorized**: Invalid or expired refresh token, unknown or deactivated user
    """
    # Verify refresh token
    payload = auth_service.verify_refresh_token(token_data.refresh_token)

    if not payload:
        raise AuthenticationException("Invalid or expired refresh token")

    # Get user
    user_repo = UserRepository(db)
    user = await user_repo.get_by_id(payload.get("sub"))

    if not user or not user.is_active:
        raise AuthenticationException("User not found")

    logger.info(f"Token refreshed for user: {user.username}")
    return ApiResponse(data=auth_service.issue_tokens(user))


@router.get("/me", response_model=ApiResponse[UserResponse])
async def get_current_user_info(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get current authenticated user information

    Includes the admin permissions granted to the user, if any.

    ## Error Responses

    - **401 Unauthorized**: Missing, invalid, or expired access token
    """
    user_repo = UserRepository(db)
    response = UserResponse.model_validate(current_user)
    response.permissions = await user_repo.list_permissions(current_user.id)
    return ApiResponse(data=response)
