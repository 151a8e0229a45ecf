"""
esport/routes/newsletter.py
Newsletter subscription and sending
"""
import logging
from typing import Dict, List, Optional, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from esport.config.feature_flags import feature_flags
from esport.config.settings import Settings, get_settings
from esport.database import get_db
from esport.errors import NotFoundError, InvalidStateError, ErrorCode
from esport.orm.user import User, UserRole
from esport.rbac import require_role
from esport.services.mailer import Mailer
from esport.services.newsletter_service import NewsletterService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/newsletter", tags=["Newsletter"])

PreferenceInput = Union[Dict[str, bool], List[str]]


class SubscribeRequest(BaseModel):
    email: EmailStr
    preferences: Optional[PreferenceInput] = None


class UnsubscribeRequest(BaseModel):
    email: EmailStr


class PreferencesRequest(BaseModel):
    email: EmailStr
    preferences: PreferenceInput


class SendRequest(BaseModel):
    subject: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    preferences: Optional[PreferenceInput] = None


def get_newsletter_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> NewsletterService:
    return NewsletterService(db, Mailer(settings))


@router.post("/subscribe")
async def subscribe(payload: SubscribeRequest, service: NewsletterService = Depends(get_newsletter_service)):
    subscriber = await service.subscribe(payload.email, payload.preferences)
    return {"success": True, "subscriber": subscriber.to_dict()}


@router.post("/unsubscribe")
async def unsubscribe(payload: UnsubscribeRequest, service: NewsletterService = Depends(get_newsletter_service)):
    if not await service.unsubscribe(payload.email):
        raise NotFoundError("Subscriber", payload.email, code=ErrorCode.SUBSCRIBER_NOT_FOUND)
    return {"success": True, "message": "Unsubscribed"}


@router.put("/preferences")
async def update_preferences(
    payload: PreferencesRequest,
    service: NewsletterService = Depends(get_newsletter_service),
):
    subscriber = await service.get_by_email(payload.email)
    if subscriber is None:
        raise NotFoundError("Subscriber", payload.email, code=ErrorCode.SUBSCRIBER_NOT_FOUND)
    subscriber = await service.update_preferences(subscriber.id, payload.preferences)
    return {"success": True, "subscriber": subscriber.to_dict()}


@router.post("/send")
async def send_newsletter(
    payload: SendRequest,
    current_user: User = Depends(require_role(UserRole.admin)),
    service: NewsletterService = Depends(get_newsletter_service),
):
    if not feature_flags.FEATURE_NEWSLETTER_SEND:
        raise InvalidStateError("Newsletter sending is disabled", code=ErrorCode.FEATURE_DISABLED)

    summary = await service.send(payload.subject, payload.content, payload.preferences, sent_by=current_user.id)
    return {"success": True, **summary}
