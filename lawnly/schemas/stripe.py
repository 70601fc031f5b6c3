from pydantic import BaseModel

from lawnly.schemas.pricing import CamelModel


class StripeAccount(BaseModel):
    id: str
    details_submitted: bool = False
    payouts_enabled: bool = False


class StripePayout(BaseModel):
    id: str
    amount: int
    currency: str
    status: str | None = None


class StripeEvent(BaseModel):
    id: str | None = None
    type: str
    data: dict


class PaymentAccountStatus(CamelModel):
    stripe_account_id: str
    onboarding_complete: bool
    payouts_enabled: bool
    url: str | None = None
