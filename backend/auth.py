# auth.py — Authentication for the task board API
# Features:
# - Signed session JWT (7 days) with issuer and JTI
# - bcrypt password hashing
# - Password policy (min 8 chars, upper, lower, digit)
# - Brute force protection on login
# - Single-use password reset tokens (24h, purpose claim)

import os
import uuid
import hashlib
import secrets
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from collections import defaultdict

import bcrypt
from jose import jwt, JWTError, ExpiredSignatureError
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db_session
from errors import Conflict, InvalidOperation, Unauthorized
from models import User, utcnow

logger = logging.getLogger("taskboard.auth")

# ============================================================
# CONFIGURATION
# ============================================================

SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
if not SECRET_KEY or SECRET_KEY == "change-this-to-a-secure-random-key-in-production":
    SECRET_KEY = secrets.token_urlsafe(64)
    logger.warning(
        "⚠️  JWT_SECRET_KEY not set or insecure. Generated ephemeral key. "
        "Set JWT_SECRET_KEY in production!"
    )

ALGORITHM = "HS256"
JWT_ISSUER = os.getenv("JWT_ISSUER", "taskboard-api")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(7 * 24 * 60)))
PASSWORD_RESET_EXPIRE_HOURS = int(os.getenv("PASSWORD_RESET_EXPIRE_HOURS", "24"))
PASSWORD_RESET_PURPOSE = "password_reset"
MIN_PASSWORD_LENGTH = 8
MAX_LOGIN_ATTEMPTS = 5
LOGIN_LOCKOUT_MINUTES = 15

security = HTTPBearer(auto_error=False)

# In-memory brute force tracker (use Redis in production)
_login_attempts: Dict[str, list] = defaultdict(list)


def check_password_policy(password: str) -> str:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if not any(c.isdigit() for c in password):
        raise ValueError("Password must contain at least one digit")
    if not any(c.isupper() for c in password):
        raise ValueError("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in password):
        raise ValueError("Password must contain at least one lowercase letter")
    return password


# ============================================================
# PYDANTIC SCHEMAS
# ============================================================

class UserRegister(BaseModel):
    email: EmailStr
    password: str
    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password_policy(v)


class TeamRegister(UserRegister):
    team_name: str = Field(..., min_length=1, max_length=100)
    team_description: Optional[str] = None


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserOut(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    display_name: str
    created_at: Optional[str] = None
    last_login_at: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserOut


class CurrentUser(BaseModel):
    id: str
    email: str
    display_name: str


# ============================================================
# AUTH SERVICE
# ============================================================

class AuthService:
    """Credentials, session tokens and password reset tokens"""

    @staticmethod
    def hash_password(password: str) -> str:
        salt = bcrypt.gensalt(rounds=12)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))

    @staticmethod
    def _create_token(data: Dict[str, Any], token_type: str, expires_delta: timedelta) -> str:
        to_encode = data.copy()
        now = datetime.now(timezone.utc)
        to_encode.update({
            "exp": now + expires_delta,
            "iat": now,
            "iss": JWT_ISSUER,
            "type": token_type,
            "jti": str(uuid.uuid4()),
        })
        return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

    @staticmethod
    def _decode(token: str) -> Dict[str, Any]:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], issuer=JWT_ISSUER)

    @staticmethod
    def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        delta = expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
        return AuthService._create_token(data, "access", delta)

    @staticmethod
    def create_session_token(user: User) -> str:
        return AuthService.create_access_token({
            "sub": user.id,
            "email": user.email,
            "name": user.display_name,
        })

    @staticmethod
    def verify_token(token: str) -> Dict[str, Any]:
        try:
            return AuthService._decode(token)
        except ExpiredSignatureError:
            raise Unauthorized("Token expired")
        except JWTError:
            raise Unauthorized("Invalid token")

    # --- Password reset ---

    @staticmethod
    def _password_fingerprint(user: User) -> str:
        # Changes whenever the password does, so a used reset token stops verifying
        return hashlib.sha256(user.password_hash.encode("utf-8")).hexdigest()[:16]

    @staticmethod
    def create_password_reset_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
        delta = expires_delta or timedelta(hours=PASSWORD_RESET_EXPIRE_HOURS)
        return AuthService._create_token(
            {
                "sub": user.id,
                "email": user.email,
                "purpose": PASSWORD_RESET_PURPOSE,
                "pwf": AuthService._password_fingerprint(user),
            },
            PASSWORD_RESET_PURPOSE,
            delta,
        )

    @staticmethod
    def verify_password_reset_token(token: str, user: Optional[User]) -> bool:
        """Signature, issuer, expiry, subject and purpose must all check out."""
        if user is None:
            return False
        try:
            payload = AuthService._decode(token)
        except JWTError:
            return False
        return (
            payload.get("purpose") == PASSWORD_RESET_PURPOSE
            and payload.get("sub") == user.id
            and payload.get("email", "").lower() == user.email.lower()
            and payload.get("pwf") == AuthService._password_fingerprint(user)
        )

    # --- Brute force ---

    @staticmethod
    def _check_brute_force(email: str) -> None:
        """Check if login attempts exceed threshold"""
        now = datetime.now(timezone.utc)
        cutoff = now - timedelta(minutes=LOGIN_LOCKOUT_MINUTES)
        _login_attempts[email] = [t for t in _login_attempts[email] if t > cutoff]
        if len(_login_attempts[email]) >= MAX_LOGIN_ATTEMPTS:
            raise HTTPException(
                status_code=429,
                detail=f"Too many login attempts. Try again in {LOGIN_LOCKOUT_MINUTES} minutes.",
            )

    @staticmethod
    def _record_failed_attempt(email: str) -> None:
        _login_attempts[email].append(datetime.now(timezone.utc))

    @staticmethod
    def _clear_attempts(email: str) -> None:
        _login_attempts.pop(email, None)

    # --- Users ---

    @staticmethod
    def normalise_email(email: str) -> str:
        return email.strip().lower()

    @staticmethod
    async def get_user_by_email(email: str, db: AsyncSession) -> Optional[User]:
        stmt = select(User).where(User.email == AuthService.normalise_email(email))
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create_user(
        db: AsyncSession,
        email: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
        email_confirmed: bool = False,
    ) -> User:
        """Stage a new user in the session. The caller owns the commit."""
        try:
            check_password_policy(password)
        except ValueError as e:
            raise InvalidOperation(str(e))
        if await AuthService.get_user_by_email(email, db):
            raise Conflict("User already exists")

        user = User(
            email=AuthService.normalise_email(email),
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            password_hash=AuthService.hash_password(password),
            email_confirmed=email_confirmed,
            is_active=True,
        )
        db.add(user)
        await db.flush()
        return user

    @staticmethod
    async def authenticate_user(email: str, password: str, db: AsyncSession) -> Optional[User]:
        email = AuthService.normalise_email(email)
        AuthService._check_brute_force(email)

        user = await AuthService.get_user_by_email(email, db)
        if not user or not AuthService.verify_password(password, user.password_hash):
            AuthService._record_failed_attempt(email)
            return None

        if not user.is_active:
            return None

        AuthService._clear_attempts(email)
        user.last_login_at = utcnow()
        await db.commit()
        return user


# ============================================================
# RESPONSE HELPERS
# ============================================================

def _ts(dt) -> Optional[str]:
    return dt.isoformat() if dt else None


def user_to_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        first_name=user.first_name or "",
        last_name=user.last_name or "",
        display_name=user.display_name,
        created_at=_ts(user.created_at),
        last_login_at=_ts(user.last_login_at),
    )


def build_token_response(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=AuthService.create_session_token(user),
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=user_to_out(user),
    )


# ============================================================
# FASTAPI DEPENDENCIES
# ============================================================

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db_session),
) -> CurrentUser:
    if credentials is None or not credentials.credentials:
        raise Unauthorized()

    payload = AuthService.verify_token(credentials.credentials)
    if payload.get("type") != "access":
        raise Unauthorized("Invalid token type")

    user_id = payload.get("sub")
    if not user_id:
        raise Unauthorized("Invalid token")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise Unauthorized("User not found or inactive")

    return CurrentUser(id=user.id, email=user.email, display_name=user.display_name)
