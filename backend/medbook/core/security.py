"""
Password hashing, JWT tokens and the request-scoped caller context.

Routes never read a global session: they depend on get_request_context,
which resolves the bearer token to a RequestContext (who is calling, with
which role, at what time) that is passed explicitly into the services.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from fastapi import Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medbook.core.config import get_settings
from medbook.core.errors import ApiError
from medbook.db.session import get_db
from medbook.models.user import User

settings = get_settings()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def _unauthorized(message: str = "Unauthorized") -> ApiError:
    return ApiError(
        status.HTTP_401_UNAUTHORIZED,
        message,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> int:
    if credentials is None:
        raise _unauthorized()
    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        subject = payload.get("sub")
        if subject is None:
            raise _unauthorized("Invalid token")
        return int(subject)
    except (JWTError, ValueError):
        raise _unauthorized("Invalid token")


@dataclass(frozen=True)
class RequestContext:
    user_id: int
    email: str
    name: str | None
    role: str
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_admin(self) -> bool:
        return self.role in settings.ADMIN_ROLES

    @property
    def can_manage_qr(self) -> bool:
        return self.role in settings.QR_ADMIN_ROLES


async def get_request_context(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> RequestContext:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "User not found")
    if not user.is_active:
        raise ApiError(status.HTTP_403_FORBIDDEN, "Account is deactivated")

    structlog.contextvars.bind_contextvars(user_id=user.id)
    return RequestContext(user_id=user.id, email=user.email, name=user.name, role=user.role)


async def require_admin(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    if not ctx.is_admin:
        raise ApiError(status.HTTP_403_FORBIDDEN, "Access denied. Admin role required.")
    return ctx


async def require_qr_manager(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    if not ctx.can_manage_qr:
        raise ApiError(status.HTTP_403_FORBIDDEN, "Insufficient permissions")
    return ctx
