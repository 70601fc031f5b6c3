from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, Field

from lawnly.schemas.pricing import Slope


class AddressStatus(StrEnum):
    pending = "pending"
    verified = "verified"
    rejected = "rejected"


class BookingStatus(StrEnum):
    pending_payment = "pending_payment"
    confirmed = "confirmed"
    in_progress = "in_progress"
    completed_pending_verification = "completed_pending_verification"
    completed = "completed"
    cancelled = "cancelled"
    disputed = "disputed"
    # Raised after the payout was released; resolved outside this service
    post_payment_dispute = "post_payment_dispute"


class PayoutStatus(StrEnum):
    pending = "pending"
    released = "released"
    frozen = "frozen"
    refunded = "refunded"
    partial_refund = "partial_refund"


class ContractorTier(StrEnum):
    probation = "probation"
    standard = "standard"
    premium = "premium"


class AuthUser(BaseModel):
    id: str
    email: str | None = None


class Address(BaseModel):
    id: str
    user_id: str | None = None
    square_meters: Decimal | None = None
    slope: Slope = Slope.flat
    tier_count: int = Field(default=1, ge=1)
    status: AddressStatus = AddressStatus.pending


class Booking(BaseModel):
    id: str
    user_id: str
    contractor_id: str | None = None
    status: BookingStatus
    scheduled_date: date | None = None
    total_price: Decimal | None = None
    payment_intent_id: str | None = None
    payout_status: PayoutStatus = PayoutStatus.pending
    stripe_payout_id: str | None = None
    payout_released_at: datetime | None = None
    completed_at: datetime | None = None
    contractor_rating_response: str | None = None


class Contractor(BaseModel):
    id: str
    user_id: str
    business_name: str | None = None
    tier: ContractorTier = ContractorTier.probation
    stripe_account_id: str | None = None
    stripe_onboarding_complete: bool = False
    stripe_payouts_enabled: bool = False
    average_rating: Decimal | None = None
    total_ratings_count: int = 0
    is_active: bool = True
    approval_status: str = "pending"


class Review(BaseModel):
    user_id: str
    contractor_id: str
    booking_id: str
    rating: int = Field(ge=1, le=5)
    comment: str | None = None


class Dispute(BaseModel):
    booking_id: str
    raised_by: str = "customer"
    description: str
    dispute_reason: str
    customer_photos: list[str] = []
    suggested_refund_amount: Decimal | None = None


class Notification(BaseModel):
    user_id: str
    title: str
    message: str
    type: str = "info"
    booking_id: str | None = None
