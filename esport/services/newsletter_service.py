"""
esport/services/newsletter_service.py
Newsletter subscriptions, preference keys and sending

Each send writes a newsletters row and one newsletter_logs row per
recipient, then stores the sent/failed counters on the newsletter.
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, Mapping, Optional, Union

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from esport.errors import ValidationError, NotFoundError, ErrorCode
from esport.orm.activity_log import ActivityAction
from esport.orm.newsletter import (
    NewsletterSubscriber, NewsletterPreference, Newsletter, NewsletterLog, DeliveryStatus
)
from esport.services.activity_logger import log_activity
from esport.services.mailer import Mailer, MailError

logger = logging.getLogger(__name__)

Preferences = Union[Mapping[str, bool], Iterable[str]]


def preference_keys(preferences: Optional[Preferences]) -> list:
    """Selected keys from either {key: bool} or a plain list of keys."""
    if not preferences:
        return []
    if isinstance(preferences, Mapping):
        keys = [k for k, v in preferences.items() if v]
    else:
        keys = list(preferences)
    return sorted({str(k).strip() for k in keys if str(k).strip()})


class NewsletterService:

    def __init__(self, db: AsyncSession, mailer: Mailer):
        self.db = db
        self.mailer = mailer

    async def get_by_email(self, email: str) -> Optional[NewsletterSubscriber]:
        result = await self.db.execute(
            select(NewsletterSubscriber)
            .where(NewsletterSubscriber.email == email.strip().lower())
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_subscriber(self, subscriber_id: int) -> NewsletterSubscriber:
        result = await self.db.execute(
            select(NewsletterSubscriber)
            .where(NewsletterSubscriber.id == subscriber_id)
            .execution_options(populate_existing=True)
        )
        subscriber = result.scalar_one_or_none()
        if subscriber is None:
            raise NotFoundError("Subscriber", subscriber_id, code=ErrorCode.SUBSCRIBER_NOT_FOUND)
        return subscriber

    async def subscribe(self, email: str, preferences: Optional[Preferences] = None) -> NewsletterSubscriber:
        """Insert or reactivate; preferences are replaced when given."""
        email = (email or "").strip().lower()
        if not email or "@" not in email:
            raise ValidationError("A valid email is required", code=ErrorCode.INVALID_INPUT)

        subscriber = await self.get_by_email(email)
        if subscriber is None:
            subscriber = NewsletterSubscriber(email=email, active=True)
            self.db.add(subscriber)
            await self.db.flush()
            logger.info(f"Newsletter subscriber added: {subscriber.id}")
        elif not subscriber.active:
            subscriber.active = True
            logger.info(f"Newsletter subscriber reactivated: {subscriber.id}")

        if preferences:
            await self._replace_preferences(subscriber.id, preferences)

        await self.db.commit()
        return await self.get_subscriber(subscriber.id)

    async def unsubscribe(self, email: str) -> bool:
        subscriber = await self.get_by_email(email or "")
        if subscriber is None:
            return False

        subscriber.active = False
        await self.db.commit()
        logger.info(f"Newsletter subscriber deactivated: {subscriber.id}")
        return True

    async def update_preferences(self, subscriber_id: int, preferences: Preferences) -> NewsletterSubscriber:
        await self.get_subscriber(subscriber_id)
        await self._replace_preferences(subscriber_id, preferences)
        await self.db.commit()
        return await self.get_subscriber(subscriber_id)

    async def _replace_preferences(self, subscriber_id: int, preferences: Preferences) -> None:
        await self.db.execute(
            delete(NewsletterPreference).where(NewsletterPreference.subscriber_id == subscriber_id)
        )
        for key in preference_keys(preferences):
            self.db.add(NewsletterPreference(subscriber_id=subscriber_id, preference_key=key))
        await self.db.flush()

    async def recipients(self, preferences: Optional[Preferences] = None) -> list:
        """Active subscribers, narrowed to those holding any of the given keys."""
        query = select(NewsletterSubscriber).where(NewsletterSubscriber.active.is_(True))

        keys = preference_keys(preferences)
        if keys:
            query = query.where(
                NewsletterSubscriber.id.in_(
                    select(NewsletterPreference.subscriber_id)
                    .where(NewsletterPreference.preference_key.in_(keys))
                )
            )

        result = await self.db.execute(query.order_by(NewsletterSubscriber.id))
        return list(result.scalars().all())

    async def send(
        self,
        subject: str,
        content: str,
        preferences: Optional[Preferences] = None,
        sent_by: Optional[int] = None
    ) -> Dict[str, int]:
        """
        Deliver a newsletter to every matching subscriber.

        A failed delivery is logged and counted; it never stops the run.
        Returns {"newsletter_id", "total", "sent", "failed"}.
        """
        if not (subject or "").strip() or not (content or "").strip():
            raise ValidationError("Subject and content are required", code=ErrorCode.MISSING_FIELD)

        subscribers = await self.recipients(preferences)

        newsletter = Newsletter(
            subject=subject,
            content=content,
            sent_at=datetime.utcnow(),
            total_recipients=len(subscribers)
        )
        self.db.add(newsletter)
        await self.db.flush()

        sent = failed = 0
        for subscriber in subscribers:
            try:
                await self.mailer.send(subscriber.email, subject, content)
            except MailError as e:
                failed += 1
                logger.warning(f"Newsletter {newsletter.id} to subscriber {subscriber.id} failed: {e}")
                self.db.add(NewsletterLog(
                    newsletter_id=newsletter.id,
                    subscriber_id=subscriber.id,
                    status=DeliveryStatus.failed,
                    error=str(e)
                ))
                continue

            sent += 1
            self.db.add(NewsletterLog(
                newsletter_id=newsletter.id,
                subscriber_id=subscriber.id,
                status=DeliveryStatus.sent
            ))

        newsletter.sent_count = sent
        newsletter.failed_count = failed

        log_activity(
            self.db,
            ActivityAction.newsletter_sent,
            user_id=sent_by,
            details={"newsletter_id": newsletter.id, "sent": sent, "failed": failed}
        )
        await self.db.commit()

        logger.info(f"Newsletter {newsletter.id} sent: {sent}/{len(subscribers)} delivered, {failed} failed")
        return {"newsletter_id": newsletter.id, "total": len(subscribers), "sent": sent, "failed": failed}
