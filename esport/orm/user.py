"""
esport/orm/user.py
User accounts and their optional profile
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from enum import Enum

from esport.orm.base import Base, BaseModel, isoformat


class UserRole(str, Enum):
    """Account roles, lowest to highest privilege"""
    user = "user"
    moderator = "moderator"
    admin = "admin"


class User(BaseModel):
    __tablename__ = "users"

    username = Column(String(50), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.user, index=True)

    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)

    profile = relationship(
        "UserProfile",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username}, role={self.role})>"

    def to_dict(self, include_profile: bool = False):
        data = {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role.value if self.role else None,
            "is_active": self.is_active,
            "last_login": isoformat(self.last_login),
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
        if include_profile:
            data["profile"] = self.profile.to_dict() if self.profile else None
        return data


class UserProfile(Base):
    """Optional personal details, one row per user"""
    __tablename__ = "user_profiles"

    PROFILE_FIELDS = (
        "first_name", "last_name", "phone", "address",
        "city", "postal_code", "country", "avatar",
    )

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)

    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(30), nullable=True)
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True)
    avatar = Column(String(500), nullable=True)

    user = relationship("User", back_populates="profile")

    def to_dict(self):
        return {field: getattr(self, field) for field in self.PROFILE_FIELDS}
