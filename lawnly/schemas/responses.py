from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from lawnly.schemas.pricing import CamelModel
from lawnly.schemas.supabase import BookingStatus, ContractorTier


class PayoutResult(CamelModel):
    booking_id: str
    released: bool
    payout_ref: str | None = None
    already_released: bool = False
    error: str | None = None


class ApproveJobResponse(CamelModel):
    success: bool = True
    payout_released: bool
    review_saved: bool | None = None


class BookingResponse(CamelModel):
    booking_id: str
    status: BookingStatus


class Promotion(CamelModel):
    contractor_id: str
    from_tier: ContractorTier = Field(alias="from")
    to_tier: ContractorTier = Field(alias="to")


class TierPromotionResponse(CamelModel):
    evaluated: int
    platform_completed_jobs: int
    promotions: list[Promotion] = []
    errors: int = 0


class JobSubmittedResponse(BaseModel):
    job_id: str
    status: str
    message: str


class JobStatusResponse(BaseModel):
    job_id: str
    status: str
    task_type: str
    created_at: datetime
    finished_at: datetime | None = None
    result: TierPromotionResponse | None = None
    error: str | None = None
