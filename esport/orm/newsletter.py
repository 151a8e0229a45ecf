"""
esport/orm/newsletter.py
Newsletter subscribers, their preference keys, sent issues and delivery logs
"""
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, ForeignKey, UniqueConstraint,
    Enum as SQLEnum
)
from sqlalchemy.orm import relationship

from esport.orm.base import Base, BaseModel, isoformat


class DeliveryStatus(str, PyEnum):
    sent = "sent"
    failed = "failed"


class NewsletterSubscriber(BaseModel):
    __tablename__ = "newsletter_subscribers"

    email = Column(String(255), nullable=False, unique=True, index=True)
    active = Column(Boolean, nullable=False, default=True)

    preferences = relationship(
        "NewsletterPreference",
        back_populates="subscriber",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "active": self.active,
            "preferences": sorted(p.preference_key for p in self.preferences),
            "created_at": isoformat(self.created_at),
        }


class NewsletterPreference(Base):
    __tablename__ = "newsletter_preferences"
    __table_args__ = (
        UniqueConstraint("subscriber_id", "preference_key", name="uq_newsletter_preference"),
    )

    id = Column(Integer, primary_key=True, index=True)
    subscriber_id = Column(
        Integer,
        ForeignKey("newsletter_subscribers.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    preference_key = Column(String(50), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    subscriber = relationship("NewsletterSubscriber", back_populates="preferences")


class Newsletter(Base):
    __tablename__ = "newsletters"

    id = Column(Integer, primary_key=True, index=True)
    subject = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    sent_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    total_recipients = Column(Integer, nullable=False, default=0)
    sent_count = Column(Integer, nullable=False, default=0)
    failed_count = Column(Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            "id": self.id,
            "subject": self.subject,
            "sent_at": isoformat(self.sent_at),
            "total_recipients": self.total_recipients,
            "sent_count": self.sent_count,
            "failed_count": self.failed_count,
        }


class NewsletterLog(Base):
    """Append-only, one row per recipient per newsletter"""
    __tablename__ = "newsletter_logs"

    id = Column(Integer, primary_key=True, index=True)
    newsletter_id = Column(Integer, ForeignKey("newsletters.id", ondelete="CASCADE"), nullable=False, index=True)
    subscriber_id = Column(Integer, ForeignKey("newsletter_subscribers.id", ondelete="CASCADE"), nullable=False)
    status = Column(SQLEnum(DeliveryStatus), nullable=False)
    error = Column(Text, nullable=True)
    sent_at = Column(DateTime, default=datetime.utcnow, nullable=False)
