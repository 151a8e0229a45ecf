"""
esport/routes/payments.py
Payment records and the signed provider webhook

The webhook body is authenticated with an HMAC-SHA256 of the raw bytes,
keyed with PAYMENT_GATEWAY_KEY and sent in the X-Payment-Signature header.
"""
import json
import logging
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from esport.config.feature_flags import feature_flags
from esport.config.settings import Settings, get_settings
from esport.database import get_db
from esport.errors import (
    ValidationError, UnauthorizedError, NotAuthorizedError, InvalidStateError, ErrorCode
)
from esport.orm.payment import PaymentStatus
from esport.orm.user import User, UserRole
from esport.rbac import get_current_user
from esport.services.payment_service import PaymentService, verify_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


class PaymentRequest(BaseModel):
    competition_id: Optional[int] = Field(None, gt=0)
    amount: Decimal = Field(..., ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    payment_method: Optional[str] = Field(None, max_length=50)


class WebhookEvent(BaseModel):
    payment_id: int = Field(..., gt=0)
    status: PaymentStatus
    transaction_id: Optional[str] = Field(None, max_length=255)


def _require_payments():
    if not feature_flags.FEATURE_PAYMENTS:
        raise InvalidStateError("Payments are disabled", code=ErrorCode.FEATURE_DISABLED)


@router.post("", status_code=201)
async def create_payment(
    payload: PaymentRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    _require_payments()
    data = payload.model_dump()
    data["user_id"] = current_user.id
    payment = await PaymentService(db, settings).create_payment(data)
    return {"success": True, "payment": payment.to_dict()}


@router.get("/{payment_id}")
async def get_payment(
    payment_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    payment = await PaymentService(db, settings).get_payment(payment_id)
    if payment.user_id != current_user.id and current_user.role != UserRole.admin:
        raise NotAuthorizedError("You can only view your own payments", code=ErrorCode.FORBIDDEN)
    return {"success": True, "payment": payment.to_dict()}


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    x_payment_signature: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    _require_payments()
    body = await request.body()

    if not verify_signature(settings.payment_gateway_key, body, x_payment_signature):
        logger.warning(f"Rejected payment webhook with bad signature from {request.client.host if request.client else '?'}")
        raise UnauthorizedError("Invalid webhook signature", code=ErrorCode.BAD_SIGNATURE)

    try:
        event = WebhookEvent.model_validate(json.loads(body or b"{}"))
    except (ValueError, PydanticValidationError) as e:
        raise ValidationError("Malformed webhook payload", code=ErrorCode.INVALID_INPUT,
                              details={"reason": str(e)[:200]})

    payment = await PaymentService(db, settings).update_status(
        event.payment_id, event.status, event.transaction_id
    )
    return {"success": True, "payment": payment.to_dict()}
