"""
esport/routes/users.py
Account registration, login and profile routes
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from esport.config.settings import Settings, get_settings
from esport.database import get_db
from esport.errors import UnauthorizedError, ErrorCode
from esport.orm.user import User, UserRole
from esport.rate_limit import limiter
from esport.rbac import create_access_token, get_current_user, require_role
from esport.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


# ================= SCHEMAS =================

class ProfileData(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)
    avatar: Optional[str] = Field(None, max_length=500)


class UserRegister(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    profile: Optional[ProfileData] = None


class UserUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, max_length=128)
    profile: Optional[ProfileData] = None


class AdminUserUpdate(UserUpdate):
    role: Optional[UserRole] = None


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


# ================= ROUTES =================

@router.post("/register", status_code=201)
@limiter.limit("10/minute")
async def register(
    request: Request,
    payload: UserRegister,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Create an account and return a bearer token for it."""
    service = UserService(db)
    user = await service.create_user(
        username=payload.username,
        email=payload.email,
        password=payload.password,
        profile=payload.profile.model_dump(exclude_none=True) if payload.profile else None,
        ip_address=_client_ip(request)
    )
    return {
        "success": True,
        "user": user.to_dict(include_profile=True),
        "access_token": create_access_token(user, settings),
        "token_type": "bearer",
    }


@router.post("/login")
@limiter.limit("20/minute")
async def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """OAuth2 password form; username may be the username or the email."""
    user = await UserService(db).authenticate(form_data.username, form_data.password, _client_ip(request))
    if user is None:
        raise UnauthorizedError("Incorrect username or password", code=ErrorCode.BAD_CREDENTIALS)

    return {
        "success": True,
        "access_token": create_access_token(user, settings),
        "token_type": "bearer",
        "role": user.role.value,
        "user_id": user.id,
    }


@router.get("/me")
async def get_me(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await UserService(db).get_user(current_user.id, with_profile=True)
    return {"success": True, "user": user.to_dict(include_profile=True)}


@router.put("/me")
async def update_me(
    payload: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = payload.model_dump(exclude_none=True)
    user = await UserService(db).update_user(current_user.id, data)
    return {"success": True, "user": user.to_dict(include_profile=True)}


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    current_user: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    user = await UserService(db).get_user(user_id, with_profile=True)
    return {"success": True, "user": user.to_dict(include_profile=True)}


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    payload: AdminUserUpdate,
    current_user: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    data = payload.model_dump(exclude_none=True)
    if "role" in data:
        data["role"] = data["role"].value
    user = await UserService(db).update_user(user_id, data)
    logger.info(f"Admin {current_user.id} updated user {user_id}: {sorted(data)}")
    return {"success": True, "user": user.to_dict(include_profile=True)}
