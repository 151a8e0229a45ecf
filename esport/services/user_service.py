"""
esport/services/user_service.py
Account creation, authentication and profile updates

Passwords are hashed with bcrypt through passlib. bcrypt blocks the event
loop, so hashing and verification run in a thread pool.
"""
import asyncio
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from passlib.context import CryptContext
from sqlalchemy import select, or_
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from esport.errors import ValidationError, NotFoundError, ConflictError, ErrorCode
from esport.orm.activity_log import ActivityAction
from esport.orm.user import User, UserProfile, UserRole
from esport.services.activity_logger import log_activity

logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=10,
)

MIN_PASSWORD_LENGTH = 8

# Thread pool for running blocking operations
_executor = None


def get_executor():
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(max_workers=4)
    return _executor


def normalize_password(password: str) -> str:
    """
    bcrypt only supports 72 bytes.
    Truncate AFTER UTF-8 encoding.
    """
    encoded = password.encode("utf-8")
    if len(encoded) > 72:
        encoded = encoded[:72]
    return encoded.decode("utf-8", errors="ignore")


async def hash_password_async(password: str) -> str:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(get_executor(), pwd_context.hash, normalize_password(password))


async def verify_password_async(plain: str, hashed: str) -> bool:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(get_executor(), pwd_context.verify, normalize_password(plain), hashed)


def password_problems(password: str) -> list:
    """Unmet password rules, empty when the password is acceptable."""
    problems = []
    if len(password or "") < MIN_PASSWORD_LENGTH:
        problems.append(f"at least {MIN_PASSWORD_LENGTH} characters")
    if not re.search(r"[a-z]", password or ""):
        problems.append("a lowercase letter")
    if not re.search(r"[A-Z]", password or ""):
        problems.append("an uppercase letter")
    if not re.search(r"\d", password or ""):
        problems.append("a digit")
    if not re.search(r"[^A-Za-z0-9]", password or ""):
        problems.append("a special character")
    return problems


def check_password_policy(password: str) -> None:
    problems = password_problems(password)
    if problems:
        raise ValidationError(
            "Password must contain " + ", ".join(problems),
            code=ErrorCode.WEAK_PASSWORD,
            details={"missing": problems}
        )


class UserService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _ensure_unique(self, username: Optional[str], email: Optional[str], exclude_id: Optional[int] = None):
        conditions = []
        if username:
            conditions.append(User.username == username)
        if email:
            conditions.append(User.email == email)
        if not conditions:
            return

        query = select(User).where(or_(*conditions))
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        result = await self.db.execute(query)
        existing = result.scalars().first()

        if existing is not None:
            field = "username" if username and existing.username == username else "email"
            raise ConflictError(
                f"A user with this {field} already exists",
                code=ErrorCode.USER_EXISTS,
                details={"field": field}
            )

    async def create_user(
        self,
        username: str,
        email: str,
        password: str,
        profile: Optional[Mapping[str, Any]] = None,
        role: UserRole = UserRole.user,
        ip_address: Optional[str] = None
    ) -> User:
        username = (username or "").strip()
        email = (email or "").strip().lower()
        if not username or not email:
            raise ValidationError("Username and email are required", code=ErrorCode.MISSING_FIELD)
        check_password_policy(password)

        await self._ensure_unique(username, email)

        user = User(
            username=username,
            email=email,
            password_hash=await hash_password_async(password),
            role=role,
            is_active=True
        )
        self.db.add(user)
        await self.db.flush()

        profile_data = {k: v for k, v in (profile or {}).items() if k in UserProfile.PROFILE_FIELDS}
        self.db.add(UserProfile(user_id=user.id, **profile_data))

        log_activity(self.db, ActivityAction.user_registered, user_id=user.id, ip_address=ip_address)
        await self.db.commit()

        logger.info(f"User registered: {user.id} ({user.username})")
        return await self.get_user(user.id, with_profile=True)

    async def authenticate(
        self,
        username_or_email: str,
        password: str,
        ip_address: Optional[str] = None
    ) -> Optional[User]:
        """User for valid credentials (last_login updated), otherwise None."""
        identifier = (username_or_email or "").strip()
        result = await self.db.execute(
            select(User).where(or_(User.username == identifier, User.email == identifier.lower()))
        )
        user = result.scalars().first()

        if user is None or not user.is_active or not await verify_password_async(password or "", user.password_hash):
            logger.warning(f"Failed login for '{identifier}'")
            log_activity(
                self.db,
                ActivityAction.login_failed,
                user_id=user.id if user else None,
                details={"identifier": identifier},
                ip_address=ip_address
            )
            await self.db.commit()
            return None

        user.last_login = datetime.utcnow()
        log_activity(self.db, ActivityAction.user_login, user_id=user.id, ip_address=ip_address)
        await self.db.commit()
        return user

    async def get_user(self, user_id: int, with_profile: bool = False) -> User:
        # refresh identity-mapped users so a profile added in this session is loaded
        query = select(User).where(User.id == user_id).execution_options(populate_existing=True)
        if with_profile:
            query = query.options(selectinload(User.profile))
        result = await self.db.execute(query)
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User", user_id, code=ErrorCode.USER_NOT_FOUND)
        return user

    async def update_user(self, user_id: int, data: Mapping[str, Any]) -> User:
        """Update username, email, role, password and the nested profile."""
        user = await self.get_user(user_id)
        data = dict(data or {})

        username = data.get("username")
        email = data.get("email")
        if email:
            email = email.strip().lower()
        await self._ensure_unique(
            username if username and username != user.username else None,
            email if email and email != user.email else None,
            exclude_id=user.id
        )

        if username:
            user.username = username.strip()
        if email:
            user.email = email
        if data.get("role"):
            try:
                user.role = UserRole(data["role"])
            except ValueError:
                raise ValidationError(
                    f"Invalid role '{data['role']}'",
                    code=ErrorCode.INVALID_INPUT,
                    details={"allowed": [r.value for r in UserRole]}
                )
        if data.get("password"):
            check_password_policy(data["password"])
            user.password_hash = await hash_password_async(data["password"])

        if data.get("profile"):
            self._apply_profile(user, data["profile"])

        log_activity(
            self.db,
            ActivityAction.profile_updated,
            user_id=user.id,
            details={"fields": sorted(k for k in data if k != "password" and data[k])}
        )
        await self.db.commit()
        return await self.get_user(user.id, with_profile=True)

    async def update_profile(self, user_id: int, data: Mapping[str, Any]) -> Dict[str, Any]:
        user = await self.get_user(user_id)
        self._apply_profile(user, data)

        log_activity(self.db, ActivityAction.profile_updated, user_id=user.id, details={"fields": sorted(data)})
        await self.db.commit()
        user = await self.get_user(user_id, with_profile=True)
        return user.profile.to_dict()

    def _apply_profile(self, user: User, data: Mapping[str, Any]) -> None:
        unknown = sorted(set(data) - set(UserProfile.PROFILE_FIELDS))
        if unknown:
            raise ValidationError(
                "Unknown profile fields",
                code=ErrorCode.INVALID_INPUT,
                details={"fields": unknown}
            )

        if user.profile is None:
            user.profile = UserProfile(user_id=user.id)
        for field, value in data.items():
            setattr(user.profile, field, value)
