from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from minichat.database import get_db
from minichat.exceptions import ConflictError
from minichat.models.base import utcnow
from minichat.models.user import User
from minichat.repositories.user_repository import UserRepository
from minichat.schemas.user import UserCreate, UserResponse, Token, UserLogin, GoogleLogin, RefreshTokenRequest
from minichat.auth import (
    authenticate_user,
    create_refresh_token,
    create_user_token,
    decode_access_token,
    verify_google_token,
)
from minichat.config import settings

router = APIRouter()

async def issue_tokens(user_repo: UserRepository, user: User) -> dict:
    refresh_token = create_refresh_token()
    expires_at = utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    await user_repo.set_refresh_token(user, refresh_token, expires_at)

    return {
        "access_token": create_user_token(user),
        "refresh_token": refresh_token,
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    }

@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register_user(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    user_repo = UserRepository(db)

    if await user_repo.get_by_email(user_data.email):
        raise ConflictError("Registration failed. Email is already registered.")

    return await user_repo.create(user_data)

@router.post("/login", response_model=Token)
async def login_user(user_data: UserLogin, db: AsyncSession = Depends(get_db)):
    user = await authenticate_user(db, user_data.email, user_data.password)
    if not user:
        raise HTTPException(status_code=401, detail="Login failed due to incorrect credentials.")

    return await issue_tokens(UserRepository(db), user)

@router.post("/token", response_model=Token)
async def login_user_form(form_data: OAuth2PasswordRequestForm = Depends(), db: AsyncSession = Depends(get_db)):
    user = await authenticate_user(db, form_data.username, form_data.password)
    if not user:
        raise HTTPException(status_code=401, detail="Login failed due to incorrect credentials.")

    return await issue_tokens(UserRepository(db), user)

@router.post("/google-login", response_model=Token)
async def login_with_google(payload: GoogleLogin, db: AsyncSession = Depends(get_db)):
    """Sign in with a Google ID token, registering a password-less account on first use."""
    identity = await verify_google_token(payload.credential)
    user_repo = UserRepository(db)

    user = await user_repo.get_by_email(identity.email)
    if user is None:
        user = await user_repo.create(UserCreate(email=identity.email, name=identity.name[:100]))

    return await issue_tokens(user_repo, user)

@router.post("/refresh-token", response_model=Token)
async def refresh_token(payload: RefreshTokenRequest, db: AsyncSession = Depends(get_db)):
    invalid = HTTPException(status_code=401, detail="Invalid access token or refresh token.")
    try:
        claims = decode_access_token(payload.access_token, verify_exp=False)
        user_id = int(claims.get("sub"))
    except (JWTError, TypeError, ValueError):
        raise invalid

    user_repo = UserRepository(db)
    user = await user_repo.get_by_id(user_id)
    if (
        user is None
        or user.refresh_token != payload.refresh_token
        or user.refresh_token_expires_at is None
        or user.refresh_token_expires_at <= utcnow()
    ):
        raise invalid

    return await issue_tokens(user_repo, user)
