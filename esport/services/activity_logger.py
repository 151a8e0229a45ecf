"""
esport/services/activity_logger.py
Centralized activity logging helper

Logs are append-only. The entry joins the caller's transaction, so it is
persisted exactly when the audited action is committed.
"""
import logging
from typing import Optional, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession

from esport.orm.activity_log import ActivityLog, ActivityAction

logger = logging.getLogger(__name__)


def log_activity(
    db: AsyncSession,
    action: ActivityAction,
    user_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> ActivityLog:
    """
    Add an activity entry to the current session.

    Call this AFTER the action itself succeeded and BEFORE the commit.

    Example usage:
        log_activity(
            db,
            ActivityAction.result_submitted,
            user_id=current_user.id,
            details={"result_id": result.id}
        )
    """
    entry = ActivityLog(
        user_id=user_id,
        action=action,
        details=details,
        ip_address=ip_address
    )
    db.add(entry)

    logger.debug(f"Activity logged: {action.value} by {user_id} {details or ''}")
    return entry
