"""
esport/rbac.py
Bearer JWT authentication and role checks

Tokens carry sub = user id and the user's role. Routes use
get_current_user, get_current_user_optional or require_role(...).
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, ExpiredSignatureError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from esport.config.settings import Settings, get_settings
from esport.database import get_db
from esport.errors import UnauthorizedError, NotAuthorizedError, ErrorCode
from esport.orm.user import User, UserRole

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/login", auto_error=False)

# ================= TOKEN UTILS =================

def create_access_token(user: User, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode = {
        "sub": str(user.id),
        "role": user.role.value,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    """Decoded claims. Raises UnauthorizedError for expired or invalid tokens."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise UnauthorizedError("Token has expired", code=ErrorCode.AUTH_EXPIRED)
    except JWTError:
        raise UnauthorizedError("Invalid token", code=ErrorCode.AUTH_INVALID)

    if payload.get("type") != "access" or not str(payload.get("sub", "")).isdigit():
        raise UnauthorizedError("Invalid token payload", code=ErrorCode.AUTH_INVALID)
    return payload


# ================= AUTH DEPENDENCIES =================

async def _user_from_token(token: str, db: AsyncSession, settings: Settings) -> User:
    payload = decode_token(token, settings)

    result = await db.execute(select(User).where(User.id == int(payload["sub"])))
    user = result.scalar_one_or_none()

    if not user or not user.is_active:
        raise UnauthorizedError("Invalid or expired token", code=ErrorCode.AUTH_INVALID)
    return user


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    """Authenticated user from the bearer token, 401 otherwise."""
    if not token:
        raise UnauthorizedError()
    return await _user_from_token(token, db, settings)


async def get_current_user_optional(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Optional[User]:
    """Current user if a valid token is sent, otherwise None."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    try:
        return await _user_from_token(auth_header[7:], db, settings)
    except UnauthorizedError:
        return None


def require_role(*roles: UserRole):
    """
    Dependency factory: the current user must hold one of the given roles.

    Usage:
        @router.post("/", dependencies=[Depends(require_role(UserRole.admin))])
    """
    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            logger.warning(
                f"Access denied: user {current_user.id} with role {current_user.role.value} "
                f"needed one of {[r.value for r in roles]}"
            )
            raise NotAuthorizedError(
                f"This action requires one of the roles: {', '.join(r.value for r in roles)}",
                code=ErrorCode.FORBIDDEN
            )
        return current_user
    return role_checker
