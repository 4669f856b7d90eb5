"""
Authentication service handling user registration and login.
"""

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import status

from medbook.models.user import User
from medbook.schemas.user import UserCreate, UserLogin
from medbook.core.errors import ApiError, conflict
from medbook.core.security import hash_password, verify_password, create_access_token
from medbook.core.logging import get_logger

logger = get_logger(__name__)


async def register_user(db: AsyncSession, user_data: UserCreate) -> User:
    """
    Register a new student account.
    Staff roles are granted out of band, never through self-registration.
    """
    result = await db.execute(
        select(User).where(or_(User.email == user_data.email, User.username == user_data.username))
    )
    existing = result.scalars().first()
    if existing is not None:
        field = "email" if existing.email == user_data.email else "username"
        logger.warning("registration_failed", reason=f"{field}_exists")
        raise conflict("Email already registered" if field == "email" else "Username already taken")

    user = User(
        email=user_data.email,
        username=user_data.username,
        name=user_data.name,
        hashed_password=hash_password(user_data.password),
        role="student",
    )
    db.add(user)
    await db.flush()

    logger.info("user_registered", user_id=user.id)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> str:
    """Return a JWT for valid credentials; 401 otherwise."""
    result = await db.execute(select(User).where(User.email == login_data.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed")
        raise ApiError(
            status.HTTP_401_UNAUTHORIZED,
            "Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise ApiError(status.HTTP_403_FORBIDDEN, "Account is deactivated")

    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    logger.info("user_logged_in", user_id=user.id)
    return token
