"""
esport/orm/activity_log.py
Append-only audit trail of account and competition actions
"""
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey, Enum as SQLEnum

from esport.orm.base import Base, isoformat


class ActivityAction(str, PyEnum):
    user_registered = "user_registered"
    user_login = "user_login"
    login_failed = "login_failed"
    profile_updated = "profile_updated"
    competition_created = "competition_created"
    competition_updated = "competition_updated"
    competition_deleted = "competition_deleted"
    result_submitted = "result_submitted"
    result_validated = "result_validated"
    result_contested = "result_contested"
    payment_created = "payment_created"
    payment_status_changed = "payment_status_changed"
    registration_created = "registration_created"
    registration_cancelled = "registration_cancelled"
    newsletter_sent = "newsletter_sent"


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(SQLEnum(ActivityAction), nullable=False, index=True)
    details = Column(JSON, nullable=True)
    ip_address = Column(String(45), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action.value if self.action else None,
            "details": self.details,
            "ip_address": self.ip_address,
            "created_at": isoformat(self.created_at),
        }
