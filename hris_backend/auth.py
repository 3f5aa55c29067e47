"""Password hashing and the login route."""
import logging

from fastapi import APIRouter, Depends
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .dependencies import get_db_session
from .errors import AuthError, ValidationError
from .models import User
from .schemas import LoginRequest, LoginResponse, LoginUser

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

# Use PBKDF2-SHA256 instead of bcrypt to avoid bcrypt backend issues
password_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    return password_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plain password against the stored hash."""
    return password_context.verify(password, password_hash)


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest, session: AsyncSession = Depends(get_db_session)
) -> LoginResponse:
    """Check a username/password pair. No token or session is issued."""

    if not payload.username or not payload.password:
        raise ValidationError("Username and Password are required")

    result = await session.execute(select(User).where(User.username == payload.username))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(payload.password, user.password):
        logger.info("Failed login for %r", payload.username)
        raise AuthError("Invalid credentials")

    return LoginResponse(user=LoginUser.model_validate(user))
