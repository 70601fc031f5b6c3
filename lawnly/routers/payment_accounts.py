import logging
from typing import Literal

from fastapi import APIRouter, Request

from lawnly.dependencies import CurrentUserDep, PaymentAccountDep, StripeDep
from lawnly.schemas.pricing import CamelModel
from lawnly.schemas.stripe import PaymentAccountStatus

logger = logging.getLogger(__name__)

router = APIRouter()


class PaymentAccountRequest(CamelModel):
    action: Literal["status", "create_account_link"] = "status"


@router.post("/payment_account", response_model=PaymentAccountStatus, response_model_exclude_none=True)
async def payment_account(
    user: CurrentUserDep,
    service: PaymentAccountDep,
    request: PaymentAccountRequest | None = None,
) -> PaymentAccountStatus:
    action = request.action if request else "status"
    if action == "create_account_link":
        return await service.onboarding_link(user)
    return await service.status(user)


@router.post("/payment_account/webhook")
async def payment_account_webhook(
    request: Request,
    stripe: StripeDep,
    service: PaymentAccountDep,
) -> dict:
    payload = await request.body()
    event = stripe.parse_event(payload, request.headers.get("stripe-signature"))
    logger.info("Received Stripe event %s", event.type)
    await service.handle_event(event)
    return {"received": True}
