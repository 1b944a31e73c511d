# routers/auth.py — Account endpoints: register, login, password reset
import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import (
    AuthService, UserRegister, TeamRegister, UserLogin, TokenResponse, UserOut,
    CurrentUser, build_token_response, check_password_policy, get_current_user,
    user_to_out,
)
from database import get_db_session
from errors import InvalidOperation, NotFound, Unauthorized
from mailer import Mailer, get_mailer
from membership import TeamService
from models import User
from read_cache import ReadCache, get_read_cache, invalidate_user_views

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])
logger = logging.getLogger("taskboard.auth")

FORGOT_PASSWORD_MESSAGE = "If an account exists for that email, a reset link has been sent"


class TeamRegisterResponse(TokenResponse):
    team_id: str
    team_name: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    token: str = Field(..., min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password_policy(v)


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password_policy(v)


@router.post("/register", response_model=TokenResponse)
async def register(
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db_session),
):
    """Register a new user account"""
    user = await AuthService.create_user(
        db,
        email=user_data.email,
        password=user_data.password,
        first_name=user_data.first_name,
        last_name=user_data.last_name,
    )
    await db.commit()
    logger.info(f"User {user.id} registered")
    return build_token_response(user)


@router.post("/register-team", response_model=TeamRegisterResponse)
async def register_with_team(
    data: TeamRegister,
    db: AsyncSession = Depends(get_db_session),
    cache: ReadCache = Depends(get_read_cache),
):
    """Register a user and create their first team in one step"""
    user = await AuthService.create_user(
        db,
        email=data.email,
        password=data.password,
        first_name=data.first_name,
        last_name=data.last_name,
    )
    team = await TeamService.create_team(
        db, cache, user.id, data.team_name, data.team_description, commit=False,
    )
    await db.commit()
    invalidate_user_views(cache, [user.id], boards=False)
    logger.info(f"User {user.id} registered with team {team.id}")

    token = build_token_response(user)
    return TeamRegisterResponse(**token.model_dump(), team_id=team.id, team_name=team.name)


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db_session),
):
    """Authenticate and receive a session token"""
    user = await AuthService.authenticate_user(credentials.email, credentials.password, db)
    if not user:
        logger.warning("Failed login attempt")
        raise Unauthorized("Invalid credentials")
    return build_token_response(user)


@router.post("/logout")
async def logout(user: CurrentUser = Depends(get_current_user)):
    """Session tokens are stateless; the client discards its copy"""
    logger.info(f"User {user.id} logged out")
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserOut)
async def get_me(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Get current user profile"""
    result = await db.execute(select(User).where(User.id == user.id))
    db_user = result.scalar_one_or_none()
    if not db_user:
        raise NotFound("User not found")
    return user_to_out(db_user)


async def _send_password_reset(mailer: Mailer, user_id: str, email: str, token: str):
    if not await mailer.send_password_reset(email, token):
        logger.warning(f"Password reset email for user {user_id} was not delivered")


@router.post("/forgot-password")
async def forgot_password(
    data: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db_session),
    mailer: Mailer = Depends(get_mailer),
):
    """Always answers the same way, whether or not the account exists"""
    user = await AuthService.get_user_by_email(data.email, db)
    if user is not None and user.is_active:
        token = AuthService.create_password_reset_token(user)
        # delivered after the response is sent
        background_tasks.add_task(_send_password_reset, mailer, user.id, user.email, token)
    return {"success": True, "message": FORGOT_PASSWORD_MESSAGE}


@router.post("/reset-password")
async def reset_password(
    data: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db_session),
):
    user = await AuthService.get_user_by_email(data.email, db)
    if not AuthService.verify_password_reset_token(data.token, user):
        raise InvalidOperation("Invalid or expired reset token")

    user.password_hash = AuthService.hash_password(data.new_password)
    await db.commit()
    logger.info(f"Password reset for user {user.id}")
    return {"success": True, "message": "Password has been reset"}


@router.post("/change-password")
async def change_password(
    data: ChangePasswordRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    result = await db.execute(select(User).where(User.id == user.id))
    db_user = result.scalar_one_or_none()
    if not db_user:
        raise NotFound("User not found")
    if not AuthService.verify_password(data.current_password, db_user.password_hash):
        raise InvalidOperation("Current password is incorrect")

    db_user.password_hash = AuthService.hash_password(data.new_password)
    await db.commit()
    return {"message": "Password changed successfully"}
