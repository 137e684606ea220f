"""Auth router - API endpoints for authentication."""
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from pydantic import BaseModel

from timetracker.database import get_database
from timetracker.models.user import APPROVER_ROLES, User, UserCreate, UserRole
from timetracker.services.auth_service import AuthService
from timetracker.utils.auth import verify_access_token


router = APIRouter(prefix="/auth", tags=["auth"])
security = HTTPBearer(auto_error=False)


class LoginRequest(BaseModel):
    """Login request model."""

    email: str
    password: str


class TokenResponse(BaseModel):
    """Token response model."""

    access_token: str
    token_type: str = "bearer"


@router.post("/register", response_model=User, status_code=status.HTTP_201_CREATED)
async def register(user: UserCreate, db=Depends(get_database)):
    """
    Register a new user.

    New users are employees; roles are assigned administratively.
    """
    service = AuthService(db)

    try:
        return await service.register_user(
            email=user.email,
            password=user.password,
            name=user.name,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


@router.post("/login", response_model=TokenResponse)
async def login(login_req: LoginRequest, db=Depends(get_database)):
    """Login user and return access token."""
    service = AuthService(db)

    try:
        token = await service.login(
            email=login_req.email,
            password=login_req.password,
        )
        return TokenResponse(access_token=token)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        )


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """
    Dependency to get current user ID from JWT token.

    Raises:
        HTTPException: If token is missing or invalid (401)
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    try:
        return verify_access_token(credentials.credentials)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )


async def get_current_user(
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
) -> User:
    """Dependency resolving the authenticated user with their role."""
    service = AuthService(db)

    try:
        return await service.get_user_by_id(user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )


async def require_approver(user: User = Depends(get_current_user)) -> User:
    """Dependency allowing only managers and admins."""
    if user.role.value not in APPROVER_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only managers and admins can perform this action",
        )
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Dependency allowing only admins."""
    if user.role is not UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can perform this action",
        )
    return user


@router.get("/me", response_model=User)
async def me(user: User = Depends(get_current_user)):
    """Get current authenticated user."""
    return user
