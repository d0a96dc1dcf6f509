# quizforms/routes/auth.py
"""Authentication endpoints: login, token generation and registration."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession
from quizforms.auth import (
    create_access_token,
    authenticate_user,
    get_password_hash,
)
from quizforms.database import get_session
from quizforms.models import User
from quizforms.crud import create_user, get_user_by_email
from quizforms.schemas import UserCreate, UserResponse, UserLogin, Token

logger = logging.getLogger(__name__)
router = APIRouter(tags=["auth"])

INVALID_CREDENTIALS = {
    "code": "auth_invalid_credentials",
    "message": "Invalid email or password",
}


@router.post("/token", response_model=Token)
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_session),
):
    """OAuth2 password flow used by interactive docs and external clients."""

    user = await authenticate_user(db, form_data.username, form_data.password)
    if not user:
        logger.warning("Failed OAuth login for %s", form_data.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS
        )
    logger.info("User %s logged in via OAuth form", user.email)
    return Token(access_token=create_access_token(data={"sub": user.email}))


@router.post("/login", response_model=Token)
async def login(user_in: UserLogin, db: AsyncSession = Depends(get_session)):
    """JSON-based login used by the frontend."""

    user = await authenticate_user(
        db=db, email=user_in.email, password=user_in.password
    )
    if not user:
        logger.warning("Failed login for %s", user_in.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS
        )
    logger.info("User %s logged in", user.email)
    return Token(access_token=create_access_token(data={"sub": user.email}))


@router.post("/register", response_model=UserResponse)
async def register(user_in: UserCreate, db: AsyncSession = Depends(get_session)):
    """Create an account that can author forms and take login-only ones."""

    if not user_in.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "auth_password_required",
                "message": "Password must not be empty.",
            },
        )
    existing_user = await get_user_by_email(db, user_in.email)
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "auth_email_registered",
                "message": "Email is already registered.",
            },
        )

    new_user = User(
        name=user_in.name,
        email=user_in.email,
        password_hash=get_password_hash(user_in.password),
    )
    new_user = await create_user(db, new_user)
    logger.info("User %s registered", new_user.email)
    return new_user
