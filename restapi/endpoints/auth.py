"""Authentication endpoints for user login and registration."""

from typing import Any
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.clock import Clock, get_clock
from components.core.init_db import get_db
from components.core.log import get_logger
from components.core.security import create_access_token, decode_user_id, verify_password
from components.user.models import User
from components.user.repository import UserRepository
from components.user.schemas import UserCreate, User as UserSchema, UserWithToken

router = APIRouter(prefix="/auth", tags=["authentication"])
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")
logger = get_logger(__name__)

async def get_current_user(
    db: AsyncSession = Depends(get_db),
    token: str = Depends(oauth2_scheme)
) -> User:
    """Get current user from JWT token."""
    user_id = decode_user_id(token)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await UserRepository(db).get_by_id(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user

def _with_token(user: User) -> UserWithToken:
    return UserWithToken(
        **UserSchema.model_validate(user).model_dump(),
        access_token=create_access_token(user.id),
    )

@router.post("/register", response_model=UserWithToken)
async def create_user(
    user_in: UserCreate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> Any:
    """Create new user and return JWT token."""
    repo = UserRepository(db)
    if await repo.exists(user_in.login):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Login already registered",
        )

    user = await repo.create(user_in, registration_date=clock.today())
    logger.info("user_registered", user_id=user.id)
    return _with_token(user)

@router.post("/login", response_model=UserWithToken)
async def login(
    db: AsyncSession = Depends(get_db),
    form_data: OAuth2PasswordRequestForm = Depends()
) -> Any:
    """Login user and return JWT token."""
    user = await UserRepository(db).get_by_login(form_data.username)

    if not user or not verify_password(form_data.password, user.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect login or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return _with_token(user)
